"""API Router — Search, autocomplete, quick answer and health endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from searchfuse.api.endpoints.health import router as health_router
from searchfuse.api.endpoints.search import router as search_router

router = APIRouter(tags=["api"])
router.include_router(search_router)
router.include_router(health_router)
