"""Search endpoints — Ranked metasearch, autocomplete and quick answers.

All three endpoints always answer 200 with a (possibly empty) payload; engine
and cache failures never reach the client. Only malformed query parameters
produce a 422.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from searchfuse.api.deps import get_orchestrator
from searchfuse.core.orchestrator import SearchOrchestrator
from searchfuse.models.answer import QuickAnswer
from searchfuse.models.query import SearchParams
from searchfuse.models.result import SearchResult

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/search",
    response_model=list[SearchResult],
    summary="Metasearch",
    description=(
        "Query every registered engine concurrently, then score, sort and "
        "deduplicate the merged results. Responses are cached for the "
        "configured TTL, keyed by all query parameters.\n\n"
        "`date_range` accepts `day`, `week`, `month` or `year`."
    ),
)
async def search(
    query: str = Query(min_length=1, max_length=2000, description="Search query"),
    page: int = Query(default=1, ge=1, description="1-based result page"),
    date_range: str | None = Query(default=None, description="Recency filter"),
    region: str | None = Query(default=None, description="Region code"),
    language: str | None = Query(default=None, description="Language code"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> list[SearchResult]:
    params = SearchParams(
        query=query,
        page=page,
        date_range=date_range,
        region=region,
        language=language,
    )
    return await orchestrator.search_params(params)


@router.get(
    "/autocomplete",
    response_model=list[str],
    summary="Query suggestions",
)
async def autocomplete(
    query: str = Query(min_length=1, max_length=2000, description="Partial query"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> list[str]:
    return await orchestrator.autocomplete(query)


@router.get(
    "/quick-answer",
    response_model=QuickAnswer | None,
    summary="Direct answer",
    description="A single definition or abstract for the query, or `null` when no engine has one.",
)
async def quick_answer(
    query: str = Query(min_length=1, max_length=2000, description="Search query"),
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> QuickAnswer | None:
    return await orchestrator.quick_answer(query)
