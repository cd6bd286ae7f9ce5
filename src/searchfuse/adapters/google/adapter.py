"""Google engine — Scrapes www.google.com result pages.

Request format::

    GET https://www.google.com/search?q=<query>&start=<offset>&num=10&hl=fr
        [&tbs=qdr:<d|w|m|y>] [&gl=<region>] [&lr=lang_<language>]

Each organic hit is a ``div.g`` block holding an ``h3`` title, the result
anchor, a ``div.VwiC3b`` snippet and a ``cite`` with the displayed path.
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
from searchfuse.models.result import Breadcrumb, SearchResult

logger = logging.getLogger(__name__)

_BLOCK_MARKERS = ('id="captcha-form"', "/sorry/index", "unusual traffic from your computer network")


def _text(el: Tag | None) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text().split())


def _resolve_href(href: str) -> str:
    """Unwrap Google's ``/url?q=<target>`` redirect links."""
    if href.startswith("/url?"):
        target = parse_qs(urlparse(href).query).get("q")
        if target:
            return target[0]
    return href


class GoogleEngine(SearchEngine):
    """Search engine scraping Google's HTML results.

    Args:
        **kwargs: Transport options forwarded to ``SearchEngine``.
    """

    base_url = "https://www.google.com/search"

    @property
    def name(self) -> str:
        return "Google"

    def build_params(
        self,
        query: str,
        page: int,
        date_range: str | None = None,
        region: str | None = None,
        language: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": query,
            "start": page_offset(page),
            "num": 10,
            "hl": "fr",
        }
        code = date_range_code(date_range)
        if code:
            params["tbs"] = f"qdr:{code}"
        if region:
            params["gl"] = region
        if language:
            params["lr"] = f"lang_{language}"
        return params

    def parse_results(self, html: str) -> list[SearchResult]:
        if any(marker in html for marker in _BLOCK_MARKERS):
            raise ParseError("Google returned a block page instead of results")

        soup = BeautifulSoup(html, "html.parser")
        results: list[SearchResult] = []
        for block in soup.select("div.g"):
            try:
                result = self._parse_block(block)
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed Google result block", exc_info=True)
                continue
            if result is not None:
                results.append(result)
        return results

    def _parse_block(self, block: Tag) -> SearchResult | None:
        title_el = block.select_one("h3")
        anchor = block.select_one("a[href]")
        if title_el is None or anchor is None:
            return None

        title = _text(title_el)
        link = _resolve_href(str(anchor["href"]))
        if not title or not link.startswith("http"):
            return None

        snippet = _text(block.select_one("div.VwiC3b"))

        favicon_el = block.select_one("img.XNo5Ab")
        favicon_url = str(favicon_el["src"]) if favicon_el and favicon_el.get("src") else favicon_for(link)

        site_name, breadcrumbs = self._site_info(block, link)

        return SearchResult(
            title=title,
            link=link,
            snippet=snippet,
            source=self.name,
            engine=self.name,
            favicon_url=favicon_url,
            site_name=site_name,
            breadcrumbs=breadcrumbs,
        )

    @staticmethod
    def _site_info(block: Tag, link: str) -> tuple[str | None, list[Breadcrumb]]:
        site_name = _text(block.select_one("span.VuuXrf")) or urlparse(link).hostname

        cite = block.select_one("cite")
        if cite is not None:
            parts = [part.strip() for part in cite.get_text().split("›")]
            crumbs = [Breadcrumb(text=part) for part in parts if part]
            if crumbs:
                return site_name, crumbs

        return site_name, breadcrumbs_from_url(link)
