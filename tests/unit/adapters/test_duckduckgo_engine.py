"""Tests for the DuckDuckGo engine."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from searchfuse.adapters.base.exceptions import FetchError, ParseError
from searchfuse.adapters.duckduckgo.adapter import INSTANT_ANSWER_URL, DuckDuckGoEngine
from searchfuse.models.answer import Abstract, Definition

# ── Fixtures ──

RESULTS_PAGE = """
<html><body><div id="links">
  <div class="result results_links result--ad">
    <h2 class="result__title"><a class="result__a" href="https://ads.example.com">Sponsored</a></h2>
  </div>
  <div class="result results_links web-result">
    <h2 class="result__title">
      <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fdeveloper.mozilla.org%2Fen-US%2Fdocs%2FWeb&amp;rut=abc">MDN Web Docs</a>
    </h2>
    <a class="result__url" href="#">developer.mozilla.org/en-US/docs/Web</a>
    <a class="result__snippet">Resources for developers, by developers.</a>
  </div>
  <div class="result results_links web-result">
    <h2 class="result__title"><a class="result__a" href="javascript:void(0)">Display URL only</a></h2>
    <a class="result__url" href="#"> example.org/guide </a>
  </div>
  <div class="result results_links web-result">
    <h2 class="result__title"></h2>
    <a class="result__snippet">A result without a title.</a>
  </div>
  <div class="result results_links web-result">
    <h2 class="result__title"><a class="result__a" href="/relative">No usable link</a></h2>
  </div>
</div></body></html>
"""


@pytest.fixture
def engine() -> DuckDuckGoEngine:
    return DuckDuckGoEngine(user_agents=["ua-one"])


def _json_response(payload: Any) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = payload
    return response


# ── Tests: params ──


class TestDuckDuckGoParams:
    """Tests for query-string construction."""

    def test_name(self, engine: DuckDuckGoEngine) -> None:
        assert engine.name == "DuckDuckGo"

    def test_first_page_has_no_offset(self, engine: DuckDuckGoEngine) -> None:
        assert engine.build_params("rust", 1) == {"q": "rust"}

    def test_later_page_offset(self, engine: DuckDuckGoEngine) -> None:
        assert engine.build_params("rust", 2)["s"] == 10

    def test_optional_filters(self, engine: DuckDuckGoEngine) -> None:
        params = engine.build_params("rust", 1, date_range="month", region="fr-fr", language="fr")
        assert params["df"] == "m"
        assert params["kl"] == "fr-fr"
        assert "language" not in params


# ── Tests: parsing ──


class TestDuckDuckGoParseResults:
    """Tests for HTML result extraction."""

    def test_parses_results_and_skips_ads(self, engine: DuckDuckGoEngine) -> None:
        results = engine.parse_results(RESULTS_PAGE)
        assert [r.title for r in results] == ["MDN Web Docs", "Display URL only"]

    def test_redirect_link_decoded(self, engine: DuckDuckGoEngine) -> None:
        first = engine.parse_results(RESULTS_PAGE)[0]
        assert first.link == "https://developer.mozilla.org/en-US/docs/Web"
        assert first.snippet == "Resources for developers, by developers."
        assert first.engine == "DuckDuckGo"
        assert first.site_name == "developer.mozilla.org"
        assert [crumb.text for crumb in first.breadcrumbs] == ["developer.mozilla.org", "en-US", "docs", "Web"]
        assert first.favicon_url == "https://www.google.com/s2/favicons?domain=developer.mozilla.org"

    def test_link_rebuilt_from_display_url(self, engine: DuckDuckGoEngine) -> None:
        second = engine.parse_results(RESULTS_PAGE)[1]
        assert second.link == "https://example.org/guide"
        assert second.snippet == ""

    def test_challenge_page_raises(self, engine: DuckDuckGoEngine) -> None:
        with pytest.raises(ParseError):
            engine.parse_results('<div class="anomaly-modal__title">Unfortunately, bots use DuckDuckGo too.</div>')

    def test_empty_page(self, engine: DuckDuckGoEngine) -> None:
        assert engine.parse_results("") == []


# ── Tests: search ──


class TestDuckDuckGoSearch:
    """Tests for the full fetch-and-parse cycle."""

    @pytest.mark.asyncio
    async def test_search_returns_results(self, engine: DuckDuckGoEngine) -> None:
        await engine.initialize()
        response = MagicMock()
        response.status_code = 200
        response.text = RESULTS_PAGE
        engine._client.get = AsyncMock(return_value=response)  # type: ignore[union-attr]

        results = await engine.search("mdn")

        assert len(results) == 2
        call_args = engine._client.get.call_args  # type: ignore[union-attr]
        assert call_args.args[0] == "https://html.duckduckgo.com/html"
        assert call_args.kwargs["params"] == {"q": "mdn"}
        assert call_args.kwargs["headers"]["User-Agent"] == "ua-one"

        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_server_error_raises_fetch_error(self, engine: DuckDuckGoEngine) -> None:
        await engine.initialize()
        response = MagicMock()
        response.status_code = 503
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Service Unavailable", request=MagicMock(), response=response
        )
        engine._client.get = AsyncMock(return_value=response)  # type: ignore[union-attr]

        with pytest.raises(FetchError, match="HTTP 503"):
            await engine.search("rust")

        await engine.shutdown()


# ── Tests: quick answers ──


class TestMapInstantAnswer:
    """Tests for Instant Answer payload mapping."""

    def test_definition_preferred(self, engine: DuckDuckGoEngine) -> None:
        answer = engine.map_instant_answer(
            {
                "Heading": "Ownership",
                "Definition": "The state or fact of exclusive rights and control over property.",
                "DefinitionURL": "https://www.merriam-webster.com/dictionary/ownership",
                "AbstractText": "Ownership is the state of having property.",
            },
            "ownership",
        )
        assert answer is not None
        assert answer.source == "DuckDuckGo"
        assert isinstance(answer.answer, Definition)
        assert answer.answer.term == "Ownership"
        assert answer.answer.url == "https://www.merriam-webster.com/dictionary/ownership"

    def test_abstract(self, engine: DuckDuckGoEngine) -> None:
        answer = engine.map_instant_answer(
            {
                "Heading": "Rust (programming language)",
                "Definition": "",
                "AbstractText": "Rust is a general-purpose programming language.",
                "AbstractURL": "https://en.wikipedia.org/wiki/Rust_(programming_language)",
            },
            "rust",
        )
        assert answer is not None
        assert isinstance(answer.answer, Abstract)
        assert answer.answer.heading == "Rust (programming language)"
        assert answer.answer.text == "Rust is a general-purpose programming language."

    def test_heading_falls_back_to_query(self, engine: DuckDuckGoEngine) -> None:
        answer = engine.map_instant_answer({"AbstractText": "Some text."}, "my query")
        assert answer is not None
        assert answer.answer.heading == "my query"  # type: ignore[union-attr]
        assert answer.answer.url is None

    def test_empty_payload(self, engine: DuckDuckGoEngine) -> None:
        assert engine.map_instant_answer({"Heading": "", "AbstractText": "", "Definition": ""}, "x") is None


class TestDuckDuckGoQuickAnswer:
    """Tests for the Instant Answer request."""

    @pytest.mark.asyncio
    async def test_quick_answer_request(self, engine: DuckDuckGoEngine) -> None:
        await engine.initialize()
        engine._client.get = AsyncMock(  # type: ignore[union-attr]
            return_value=_json_response({"Heading": "Rust", "AbstractText": "A language."})
        )

        answer = await engine.quick_answer("rust")

        assert answer is not None
        assert answer.answer.kind == "abstract"
        call_args = engine._client.get.call_args  # type: ignore[union-attr]
        assert call_args.args[0] == INSTANT_ANSWER_URL
        assert call_args.kwargs["params"]["format"] == "json"
        assert call_args.kwargs["headers"]["Accept"] == "application/json"

        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_non_object_payload_raises(self, engine: DuckDuckGoEngine) -> None:
        await engine.initialize()
        engine._client.get = AsyncMock(return_value=_json_response(["not", "an", "object"]))  # type: ignore[union-attr]

        with pytest.raises(ParseError):
            await engine.quick_answer("rust")

        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, engine: DuckDuckGoEngine) -> None:
        await engine.initialize()
        response = MagicMock()
        response.status_code = 200
        response.json.side_effect = ValueError("Expecting value")
        engine._client.get = AsyncMock(return_value=response)  # type: ignore[union-attr]

        with pytest.raises(ParseError, match="not JSON"):
            await engine.quick_answer("rust")

        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_disabled_instant_answers(self) -> None:
        engine = DuckDuckGoEngine(instant_answers=False)
        assert await engine.quick_answer("rust") is None
