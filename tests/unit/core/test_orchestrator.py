"""Tests for the search orchestrator."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from searchfuse.adapters.base.adapter import SearchEngine
from searchfuse.adapters.base.exceptions import FetchError, ParseError
from searchfuse.adapters.base.registry import EngineRegistry
from searchfuse.adapters.suggest.adapter import SuggestionClient
from searchfuse.cache.manager import CacheManager
from searchfuse.config.settings import CacheSettings, Settings
from searchfuse.core.orchestrator import SearchOrchestrator
from searchfuse.core.rate_limiter import RateLimiter
from searchfuse.models.answer import Abstract, Definition, QuickAnswer
from searchfuse.models.result import SearchResult

# ── Fakes ──


class FakeEngine(SearchEngine):
    """Engine returning canned results after an optional delay."""

    def __init__(
        self,
        name: str,
        results: list[SearchResult] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        answer: QuickAnswer | None = None,
    ) -> None:
        super().__init__()
        self._name = name
        self._results = results or []
        self._error = error
        self._delay = delay
        self._answer = answer
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    def build_params(self, query: str, page: int, *args: Any) -> dict[str, Any]:
        return {"q": query, "page": page}

    def parse_results(self, html: str) -> list[SearchResult]:
        return []

    async def search(self, query: str, page: int = 1, **kwargs: Any) -> list[SearchResult]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        return [r.model_copy() for r in self._results]

    async def quick_answer(self, query: str) -> QuickAnswer | None:
        if self._error:
            raise self._error
        return self._answer


def _results(engine: str, *hosts: str) -> list[SearchResult]:
    return [
        SearchResult(
            title=f"Result from {host}",
            link=f"https://{host}/rust",
            snippet=f"Snippet about rust ownership hosted on {host}, long enough to skip the penalty.",
            source=engine,
            engine=engine,
        )
        for host in hosts
    ]


def _orchestrator(
    *engines: FakeEngine,
    limits: dict[str, tuple[int, float]] | None = None,
    suggestions: SuggestionClient | None = None,
) -> SearchOrchestrator:
    registry = EngineRegistry()
    for engine in engines:
        registry.register(engine)
    return SearchOrchestrator(
        engines=registry,
        cache=CacheManager(CacheSettings(backend="memory")),
        rate_limiter=RateLimiter(limits),
        suggestions=suggestions,
    )


# ── Tests: search ──


class TestSearch:
    """Tests for the fan-out, join and ranking cycle."""

    @pytest.mark.asyncio
    async def test_merges_engines(self) -> None:
        google = FakeEngine("Google", _results("Google", "rust-lang.org", "stackoverflow.com"))
        ddg = FakeEngine("DuckDuckGo", _results("DuckDuckGo", "github.com"))
        orchestrator = _orchestrator(google, ddg)

        results = await orchestrator.search("rust ownership")

        assert {r.link for r in results} == {
            "https://rust-lang.org/rust",
            "https://stackoverflow.com/rust",
            "https://github.com/rust",
        }
        assert all(r.score > 0 for r in results)
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)

    @pytest.mark.asyncio
    async def test_engine_failure_is_isolated(self) -> None:
        broken = FakeEngine("Google", error=FetchError("Google returned HTTP 503"))
        healthy = FakeEngine("DuckDuckGo", _results("DuckDuckGo", "rust-lang.org", "stackoverflow.com", "github.com"))
        orchestrator = _orchestrator(broken, healthy)

        results = await orchestrator.search("rust")

        assert len(results) == 3
        assert orchestrator.metrics.counter("search_total:Google:failure") == 1
        assert orchestrator.metrics.counter("search_total:DuckDuckGo:success") == 1

    @pytest.mark.asyncio
    async def test_unexpected_engine_error_is_isolated(self) -> None:
        broken = FakeEngine("Google", error=RuntimeError("bug"))
        healthy = FakeEngine("DuckDuckGo", _results("DuckDuckGo", "rust-lang.org"))
        orchestrator = _orchestrator(broken, healthy)

        assert len(await orchestrator.search("rust")) == 1

    @pytest.mark.asyncio
    async def test_all_engines_fail(self) -> None:
        orchestrator = _orchestrator(
            FakeEngine("Google", error=FetchError("down")),
            FakeEngine("DuckDuckGo", error=ParseError("challenge page")),
        )
        assert await orchestrator.search("rust") == []

    @pytest.mark.asyncio
    async def test_no_engines(self) -> None:
        assert await _orchestrator().search("rust") == []

    @pytest.mark.asyncio
    async def test_rate_limited_engine_skipped(self) -> None:
        google = FakeEngine("Google", _results("Google", "rust-lang.org"))
        ddg = FakeEngine("DuckDuckGo", _results("DuckDuckGo", "stackoverflow.com"))
        orchestrator = _orchestrator(google, ddg, limits={"Google": (1, 0.001)})

        first = await orchestrator.search("first query")
        second = await orchestrator.search("second query")

        assert len(first) == 2
        assert [r.engine for r in second] == ["DuckDuckGo"]
        assert google.calls == 1
        assert orchestrator.metrics.counter("rate_limited_total:Google") == 1

    @pytest.mark.asyncio
    async def test_completion_order_does_not_matter(self) -> None:
        fast_first = _orchestrator(
            FakeEngine("Google", _results("Google", "rust-lang.org", "stackoverflow.com"), delay=0.0),
            FakeEngine("DuckDuckGo", _results("DuckDuckGo", "github.com"), delay=0.05),
        )
        slow_first = _orchestrator(
            FakeEngine("Google", _results("Google", "rust-lang.org", "stackoverflow.com"), delay=0.05),
            FakeEngine("DuckDuckGo", _results("DuckDuckGo", "github.com"), delay=0.0),
        )

        assert await fast_first.search("rust") == await slow_first.search("rust")

    @pytest.mark.asyncio
    async def test_duplicates_across_engines_removed(self) -> None:
        google = FakeEngine("Google", _results("Google", "example.com"))
        ddg = FakeEngine(
            "DuckDuckGo",
            [
                SearchResult(
                    title="Another title",
                    link="https://www.example.com/rust/",
                    snippet="Different snippet",
                    source="DuckDuckGo",
                    engine="DuckDuckGo",
                )
            ],
        )
        results = await _orchestrator(google, ddg).search("rust")
        assert len(results) == 1


class TestSearchCache:
    """Tests for cache-first behaviour."""

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self) -> None:
        google = FakeEngine("Google", _results("Google", "rust-lang.org", "stackoverflow.com"))
        orchestrator = _orchestrator(google)

        first = await orchestrator.search("rust", page=1)
        second = await orchestrator.search("rust", page=1)

        assert first == second
        assert google.calls == 1
        assert orchestrator.metrics.counter("cache_hits_total") == 1
        assert orchestrator.metrics.counter("cache_misses_total") == 1

    @pytest.mark.asyncio
    async def test_key_covers_every_parameter(self) -> None:
        google = FakeEngine("Google", _results("Google", "rust-lang.org"))
        orchestrator = _orchestrator(google)

        await orchestrator.search("rust")
        await orchestrator.search("rust", page=2)
        await orchestrator.search("rust", date_range="week")
        await orchestrator.search("rust", region="fr")
        await orchestrator.search("rust", language="en")

        assert google.calls == 5

    @pytest.mark.asyncio
    async def test_empty_result_is_cached(self) -> None:
        failing = FakeEngine("Google", error=FetchError("down"))
        orchestrator = _orchestrator(failing)

        await orchestrator.search("rust")
        await orchestrator.search("rust")

        assert failing.calls == 1

    @pytest.mark.asyncio
    async def test_cache_failure_degrades_to_live_search(self) -> None:
        google = FakeEngine("Google", _results("Google", "rust-lang.org"))
        orchestrator = _orchestrator(google)
        orchestrator.cache._get_raw = AsyncMock(side_effect=ConnectionError("pool exhausted"))  # type: ignore[method-assign]

        results = await orchestrator.search("rust")

        assert len(results) == 1


# ── Tests: autocomplete ──


class TestAutocomplete:
    @pytest.mark.asyncio
    async def test_suggestions_cached(self) -> None:
        client = SuggestionClient()
        client.suggest = AsyncMock(return_value=["rust ownership", "rust ownership rules"])  # type: ignore[method-assign]
        orchestrator = _orchestrator(suggestions=client)

        assert await orchestrator.autocomplete("rust own") == ["rust ownership", "rust ownership rules"]
        assert await orchestrator.autocomplete("rust own") == ["rust ownership", "rust ownership rules"]
        client.suggest.assert_awaited_once_with("rust own")

    @pytest.mark.asyncio
    async def test_upstream_failure_returns_empty_and_is_not_cached(self) -> None:
        client = SuggestionClient()
        client.suggest = AsyncMock(side_effect=FetchError("down"))  # type: ignore[method-assign]
        orchestrator = _orchestrator(suggestions=client)

        assert await orchestrator.autocomplete("rust") == []
        assert await orchestrator.autocomplete("rust") == []
        assert client.suggest.await_count == 2


# ── Tests: quick answer ──


class TestQuickAnswer:
    @pytest.mark.asyncio
    async def test_first_engine_in_registration_order_wins(self) -> None:
        first = QuickAnswer(source="Google", answer=Definition(term="rust", definition="Iron oxide."))
        second = QuickAnswer(source="DuckDuckGo", answer=Abstract(heading="Rust", text="A language."))
        orchestrator = _orchestrator(
            FakeEngine("Google", answer=first, delay=0.05),
            FakeEngine("DuckDuckGo", answer=second),
        )

        assert await orchestrator.quick_answer("rust") == first

    @pytest.mark.asyncio
    async def test_failing_engine_ignored(self) -> None:
        answer = QuickAnswer(source="DuckDuckGo", answer=Abstract(heading="Rust", text="A language."))
        orchestrator = _orchestrator(
            FakeEngine("Google", error=FetchError("down")),
            FakeEngine("DuckDuckGo", answer=answer),
        )
        assert await orchestrator.quick_answer("rust") == answer

    @pytest.mark.asyncio
    async def test_answer_cached(self) -> None:
        answer = QuickAnswer(source="DuckDuckGo", answer=Abstract(heading="Rust", text="A language."))
        engine = FakeEngine("DuckDuckGo", answer=answer)
        engine.quick_answer = AsyncMock(return_value=answer)  # type: ignore[method-assign]
        orchestrator = _orchestrator(engine)

        await orchestrator.quick_answer("rust")
        cached = await orchestrator.quick_answer("rust")

        assert cached == answer
        engine.quick_answer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_answer(self) -> None:
        assert await _orchestrator(FakeEngine("Google")).quick_answer("rust") is None


# ── Tests: lifecycle ──


class TestLifecycle:
    def test_from_settings(self, settings: Settings) -> None:
        registry = EngineRegistry()
        registry.register(FakeEngine("Google"))
        orchestrator = SearchOrchestrator.from_settings(settings, registry, CacheManager(settings.cache))

        assert orchestrator.rate_limiter.engines == ["Google"]
        assert orchestrator.ttl == settings.cache.ttl_seconds
        assert orchestrator.scorer.settings is settings.scoring

    def test_limits_follow_registered_engine_names(self) -> None:
        settings = Settings(
            _env_file=None,
            cache={"backend": "memory"},
            search={"engines": {"google": {"rate_limit_capacity": 2}}},
        )
        registry = EngineRegistry()
        registry.register(FakeEngine("Google"))
        registry.register(FakeEngine("DuckDuckGo"))
        orchestrator = SearchOrchestrator.from_settings(settings, registry, CacheManager(settings.cache))

        assert orchestrator.rate_limiter.engines == ["Google", "DuckDuckGo"]
        assert orchestrator.rate_limiter.available_tokens("Google") == 2.0
        assert orchestrator.rate_limiter.available_tokens("DuckDuckGo") == 5.0

    @pytest.mark.asyncio
    async def test_initialize_and_shutdown(self, settings: Settings) -> None:
        engine = FakeEngine("Google")
        registry = EngineRegistry()
        registry.register(engine)
        orchestrator = SearchOrchestrator.from_settings(settings, registry, CacheManager(settings.cache))

        await orchestrator.initialize()
        assert engine._client is not None
        assert orchestrator.suggestions._client is not None

        await orchestrator.shutdown()
        assert engine._client is None
        assert orchestrator.suggestions._client is None
