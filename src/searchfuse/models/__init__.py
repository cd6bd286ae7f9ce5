"""Data models shared across engines, orchestrator and API."""
