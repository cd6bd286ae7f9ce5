"""Search Orchestrator — Cache-first, rate-gated fan-out over all registered engines.

The orchestrator manages the full request lifecycle:
  1. Cache lookup by a deterministic key
  2. Concurrent fan-out: one task per engine, each gated by the rate limiter
  3. Join: engine failures become empty contributions
  4. Ranking: score, sort, dedup
  5. Write-through to the cache

Final order depends only on the ranking stage, never on which engine
answered first. A search never raises because of an engine or cache
failure; the worst case is an empty list.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from pydantic import TypeAdapter

from searchfuse.adapters.base.exceptions import EngineError, RateLimited
from searchfuse.adapters.base.registry import EngineRegistry
from searchfuse.adapters.suggest.adapter import SuggestionClient
from searchfuse.cache.manager import CacheManager
from searchfuse.core.rate_limiter import RateLimiter
from searchfuse.core.scorer import ResultScorer
from searchfuse.models.answer import QuickAnswer, QuickAnswerAdapter
from searchfuse.models.query import SearchParams, autocomplete_key, quick_answer_key
from searchfuse.models.result import SearchResult, SearchResultList
from searchfuse.observability.metrics import SearchMetrics

if TYPE_CHECKING:
    from searchfuse.adapters.base.adapter import SearchEngine
    from searchfuse.config.settings import Settings

logger = logging.getLogger(__name__)

SuggestionList = TypeAdapter(list[str])


class SearchOrchestrator:
    """Composes engines, rate limiter, scorer and cache into one search cycle.

    Attributes:
        engines: Registry of engines queried on every cache miss.
        cache: Result cache (advisory).
        rate_limiter: Per-engine admission gate, owned by this orchestrator.
        scorer: Ranking pipeline.
        suggestions: Autocomplete upstream.
        metrics: Counters recorded for every call.
        ttl: TTL in seconds for cached responses.
    """

    def __init__(
        self,
        engines: EngineRegistry,
        cache: CacheManager,
        rate_limiter: RateLimiter,
        scorer: ResultScorer | None = None,
        suggestions: SuggestionClient | None = None,
        metrics: SearchMetrics | None = None,
        ttl: int = 300,
        flush_on_startup: bool = False,
    ) -> None:
        self.engines = engines
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.scorer = scorer or ResultScorer()
        self.suggestions = suggestions or SuggestionClient()
        self.metrics = metrics or SearchMetrics()
        self.ttl = ttl
        self._flush_on_startup = flush_on_startup

    @classmethod
    def from_settings(cls, settings: Settings, engines: EngineRegistry, cache: CacheManager) -> SearchOrchestrator:
        """Build an orchestrator whose limiter and scorer follow *settings*.

        Buckets are keyed by each registered engine's own name, the key the
        fan-out consults.
        """
        limits: dict[str, tuple[int, float]] = {}
        for engine in engines:
            cfg = settings.search.engine_config(engine.name)
            if cfg is not None:
                limits[engine.name] = (cfg.rate_limit_capacity, cfg.rate_limit_per_second)
        return cls(
            engines=engines,
            cache=cache,
            rate_limiter=RateLimiter(limits),
            scorer=ResultScorer(settings.scoring),
            suggestions=SuggestionClient(
                base_url=settings.search.suggest_url,
                user_agents=settings.search.user_agents,
                accept_language=settings.search.accept_language,
                connect_timeout=settings.search.connect_timeout,
                timeout=settings.search.timeout,
            ),
            ttl=settings.cache.ttl_seconds,
            flush_on_startup=settings.cache.flush_on_startup,
        )

    async def initialize(self) -> None:
        """Connect the cache and open every engine's HTTP client.

        Raises:
            CacheConnectionError: If the cache backend is unreachable.
        """
        await self.cache.initialize()
        if self._flush_on_startup:
            await self.cache.flush()
        await self.engines.initialize_all()
        await self.suggestions.initialize()
        logger.info("Search orchestrator initialized with engines: %s", ", ".join(self.engines.names))

    async def shutdown(self) -> None:
        """Gracefully shut down all components."""
        await self.engines.shutdown_all()
        await self.suggestions.shutdown()
        await self.cache.shutdown()
        logger.info("Search orchestrator shut down")

    # ──────────────────────────────────────────────────────────────────────
    # Search
    # ──────────────────────────────────────────────────────────────────────

    async def search(
        self,
        query: str,
        page: int | None = None,
        date_range: str | None = None,
        region: str | None = None,
        language: str | None = None,
    ) -> list[SearchResult]:
        """Ranked, deduplicated results for one query page.

        Args:
            query: The search query string.
            page: 1-based page number (None means 1).
            date_range: Optional recency filter.
            region: Optional region code.
            language: Optional language code.

        Returns:
            Results in final order; empty if every engine failed or was skipped.
        """
        params = SearchParams(
            query=query,
            page=page or 1,
            date_range=date_range,
            region=region,
            language=language,
        )
        return await self.search_params(params)

    async def search_params(self, params: SearchParams) -> list[SearchResult]:
        """``search`` for an already validated ``SearchParams``."""
        key = params.cache_key

        cached = await self.cache.get(key, SearchResultList)
        if cached is not None:
            self.metrics.record_cache_hit()
            logger.debug("Cache hit: %s", key)
            return cached

        self.metrics.record_cache_miss()
        start = time.monotonic()

        engines = list(self.engines)
        contributions = await asyncio.gather(
            *(self._query_engine(engine, params) for engine in engines),
            return_exceptions=True,
        )

        merged: list[SearchResult] = []
        for engine, contribution in zip(engines, contributions, strict=True):
            if isinstance(contribution, RateLimited):
                self.metrics.record_rate_limited(engine.name)
                logger.info("Skipping engine '%s': %s", engine.name, contribution)
                continue
            if isinstance(contribution, EngineError):
                self.metrics.record_search_result(engine.name, False)
                logger.warning("Search failed on engine '%s': %s", engine.name, contribution)
                continue
            if isinstance(contribution, BaseException):
                self.metrics.record_search_result(engine.name, False)
                logger.error(
                    "Unexpected error from engine '%s'",
                    engine.name,
                    exc_info=(type(contribution), contribution, contribution.__traceback__),
                )
                continue
            self.metrics.record_search_result(engine.name, True)
            self.metrics.record_results_count(engine.name, len(contribution))
            merged.extend(contribution)

        results = self.scorer.rank(merged, params.query)

        if not await self.cache.set(key, results, self.ttl):
            logger.debug("Could not cache results for key: %s", key)

        logger.info(
            "Search complete: query=%s, page=%d, merged=%d, final=%d in %d ms",
            params.query,
            params.page,
            len(merged),
            len(results),
            int((time.monotonic() - start) * 1000),
        )
        return results

    async def _query_engine(self, engine: SearchEngine, params: SearchParams) -> list[SearchResult]:
        """One engine's contribution.

        Raises:
            RateLimited: The engine has no token left; it is skipped, not retried.
            FetchError: Propagated from the engine.
            ParseError: Propagated from the engine.
        """
        if not self.rate_limiter.check_and_consume(engine.name):
            raise RateLimited(engine.name)

        start = time.monotonic()
        try:
            return await engine.search(
                params.query,
                params.page,
                date_range=params.date_range,
                region=params.region,
                language=params.language,
            )
        finally:
            self.metrics.record_search_time(engine.name, time.monotonic() - start)

    # ──────────────────────────────────────────────────────────────────────
    # Autocomplete
    # ──────────────────────────────────────────────────────────────────────

    async def autocomplete(self, query: str) -> list[str]:
        """Query suggestions; empty when the upstream fails.

        Does not touch the scorer or the rate limiter. Failed lookups are not
        cached so the next keystroke retries the upstream.
        """
        key = autocomplete_key(query)

        cached = await self.cache.get(key, SuggestionList)
        if cached is not None:
            self.metrics.record_cache_hit()
            return cached
        self.metrics.record_cache_miss()

        try:
            suggestions = await self.suggestions.suggest(query)
        except EngineError as e:
            logger.warning("Autocomplete failed for query '%s': %s", query, e)
            return []

        await self.cache.set(key, suggestions, self.ttl)
        return suggestions

    # ──────────────────────────────────────────────────────────────────────
    # Quick answer
    # ──────────────────────────────────────────────────────────────────────

    async def quick_answer(self, query: str) -> QuickAnswer | None:
        """At most one direct answer for *query*.

        Every engine is asked concurrently; the first non-empty answer in
        registration order wins. Engine errors are ignored.
        """
        key = quick_answer_key(query)

        cached = await self.cache.get(key, QuickAnswerAdapter)
        if cached is not None:
            self.metrics.record_cache_hit()
            return cached
        self.metrics.record_cache_miss()

        engines = list(self.engines)
        answers = await asyncio.gather(
            *(engine.quick_answer(query) for engine in engines),
            return_exceptions=True,
        )

        for engine, answer in zip(engines, answers, strict=True):
            if isinstance(answer, BaseException):
                logger.warning("Quick answer failed on engine '%s': %s", engine.name, answer)
                continue
            if answer is not None:
                await self.cache.set(key, answer, self.ttl)
                return answer
        return None
