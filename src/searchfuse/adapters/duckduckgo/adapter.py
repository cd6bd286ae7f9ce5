"""DuckDuckGo engine — Scrapes the JavaScript-free html.duckduckgo.com endpoint.

Request format::

    GET https://html.duckduckgo.com/html?q=<query>[&s=<offset>] [&df=<d|w|m|y>] [&kl=<region>]

Quick answers come from the Instant Answer API::

    GET https://api.duckduckgo.com/?q=<query>&format=json&no_html=1&skip_disambig=1
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag

from searchfuse.adapters.base.adapter import (
    SearchEngine,
    breadcrumbs_from_url,
    date_range_code,
    favicon_for,
    page_offset,
)
from searchfuse.adapters.base.exceptions import ParseError
from searchfuse.models.answer import Abstract, Definition, QuickAnswer
from searchfuse.models.result import Breadcrumb, SearchResult

logger = logging.getLogger(__name__)

INSTANT_ANSWER_URL = "https://api.duckduckgo.com/"

_BLOCK_MARKERS = ("anomaly-modal", 'id="challenge-form"')


def _text(el: Tag | None) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text().split())


def _resolve_href(href: str) -> str:
    """Unwrap DuckDuckGo's ``//duckduckgo.com/l/?uddg=<target>`` redirect links."""
    parsed = urlparse(href)
    if parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg")
        if target:
            return target[0]
    if href.startswith("//"):
        return "https:" + href
    return href


class DuckDuckGoEngine(SearchEngine):
    """Search engine scraping DuckDuckGo's HTML results.

    Args:
        instant_answers: Whether ``quick_answer`` queries the Instant Answer API.
        **kwargs: Transport options forwarded to ``SearchEngine``.
    """

    base_url = "https://html.duckduckgo.com/html"

    def __init__(self, instant_answers: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._instant_answers = instant_answers

    @property
    def name(self) -> str:
        return "DuckDuckGo"

    def build_params(
        self,
        query: str,
        page: int,
        date_range: str | None = None,
        region: str | None = None,
        language: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"q": query}
        if page > 1:
            params["s"] = page_offset(page)
        code = date_range_code(date_range)
        if code:
            params["df"] = code
        if region:
            params["kl"] = region
        return params

    def parse_results(self, html: str) -> list[SearchResult]:
        if any(marker in html for marker in _BLOCK_MARKERS):
            raise ParseError("DuckDuckGo returned a challenge page instead of results")

        soup = BeautifulSoup(html, "html.parser")
        results: list[SearchResult] = []
        for block in soup.select(".result"):
            if "result--ad" in (block.get("class") or []):
                continue
            try:
                result = self._parse_block(block)
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed DuckDuckGo result block", exc_info=True)
                continue
            if result is not None:
                results.append(result)
        return results

    def _parse_block(self, block: Tag) -> SearchResult | None:
        title = _text(block.select_one(".result__title"))
        if not title:
            return None

        display_url = _text(block.select_one(".result__url"))
        anchor = block.select_one("a.result__a[href]")
        link = _resolve_href(str(anchor["href"])) if anchor is not None else ""
        if not link.startswith("http"):
            if not display_url:
                return None
            link = "https://" + display_url.lstrip("/:. ")

        snippet = _text(block.select_one(".result__snippet"))
        site_name, breadcrumbs = self._site_info(display_url, link)

        return SearchResult(
            title=title,
            link=link,
            snippet=snippet,
            source=self.name,
            engine=self.name,
            favicon_url=favicon_for(link),
            site_name=site_name,
            breadcrumbs=breadcrumbs,
        )

    @staticmethod
    def _site_info(display_url: str, link: str) -> tuple[str | None, list[Breadcrumb]]:
        parts = [part for part in display_url.split("/") if part]
        if parts:
            return parts[0], [Breadcrumb(text=part) for part in parts]
        return urlparse(link).hostname, breadcrumbs_from_url(link)

    # ── Quick answers ────────────────────────────────────────────────────

    async def quick_answer(self, query: str) -> QuickAnswer | None:
        """Definition or abstract from the Instant Answer API.

        Raises:
            FetchError: The API could not be reached.
            ParseError: The API did not return a JSON object.
        """
        if not self._instant_answers:
            return None

        response = await self.fetch(
            INSTANT_ANSWER_URL,
            params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
            accept="application/json",
        )
        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"Instant Answer response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ParseError("Instant Answer response is not a JSON object")

        return self.map_instant_answer(data, query)

    def map_instant_answer(self, data: dict[str, Any], query: str) -> QuickAnswer | None:
        """Map an Instant Answer payload to a ``QuickAnswer``."""
        heading = (data.get("Heading") or "").strip() or query

        definition = (data.get("Definition") or "").strip()
        if definition:
            return QuickAnswer(
                source=self.name,
                answer=Definition(term=heading, definition=definition, url=data.get("DefinitionURL") or None),
            )

        abstract = (data.get("AbstractText") or "").strip()
        if abstract:
            return QuickAnswer(
                source=self.name,
                answer=Abstract(heading=heading, text=abstract, url=data.get("AbstractURL") or None),
            )

        return None
