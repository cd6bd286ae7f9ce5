"""API dependencies — Dependency injection for FastAPI endpoints."""

from __future__ import annotations

from searchfuse.core.orchestrator import SearchOrchestrator

# Global orchestrator instance (set during application lifespan)
_orchestrator: SearchOrchestrator | None = None


def set_orchestrator(orchestrator: SearchOrchestrator | None) -> None:
    """Set the global orchestrator instance (called during app lifespan)."""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> SearchOrchestrator:
    """Get the global search orchestrator.

    Raises:
        RuntimeError: If the orchestrator is not initialized.
    """
    if _orchestrator is None:
        raise RuntimeError("Search orchestrator not initialized. Is the server running?")
    return _orchestrator
