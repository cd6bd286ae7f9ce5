"""Core search pipeline: rate limiting, scoring, orchestration."""
