"""Health check endpoints — Service status, engine health and metrics."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from searchfuse import __version__
from searchfuse.adapters.base.adapter import EngineHealth
from searchfuse.api.deps import get_orchestrator
from searchfuse.core.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Response models ──────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    """System health check response."""

    status: str = Field(description="Health status (e.g. 'healthy')")
    version: str = Field(description="SearchFuse server version")
    service: str = Field(description="Service name ('searchfuse')")
    engines: list[str] = Field(description="Registered engines in fan-out order")
    metrics: dict[str, Any] = Field(description="Snapshot of in-process counters")


class EngineHealthResponse(BaseModel):
    """Per-engine health check response."""

    engines: dict[str, EngineHealth] = Field(description="Map of engine name to its health status")


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="System Health Check",
)
async def health_check(
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        service="searchfuse",
        engines=orchestrator.engines.names,
        metrics=orchestrator.metrics.snapshot(),
    )


@router.get(
    "/health/engines",
    response_model=EngineHealthResponse,
    summary="Engine Health Check",
    description="Send a lightweight request to every registered engine and report latency and status.",
)
async def engine_health(
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> EngineHealthResponse:
    statuses = await orchestrator.engines.health_check_all()
    return EngineHealthResponse(engines=statuses)
