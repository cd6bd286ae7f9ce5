"""Base search engine — Abstract interface for all scraped search backends.

Every backend must implement this interface to take part in fan-out.
An engine is responsible for:
  1. Building the backend-specific request URL for a query
  2. Fetching the page with a rotating User-Agent and bounded timeouts
  3. Parsing the page into ``SearchResult`` items, best-effort per item
  4. Optionally producing a ``QuickAnswer``
  5. Reporting health status
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from searchfuse.adapters.base.exceptions import ConfigurationError, FetchError
from searchfuse.config.settings import DEFAULT_USER_AGENTS
from searchfuse.models.answer import QuickAnswer
from searchfuse.models.result import Breadcrumb, SearchResult

logger = logging.getLogger(__name__)

FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={domain}"

_DATE_RANGES = {
    "d": "d",
    "day": "d",
    "w": "w",
    "week": "w",
    "m": "m",
    "month": "m",
    "y": "y",
    "year": "y",
}


class EngineHealth(BaseModel):
    """Health status of a search engine."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


def date_range_code(date_range: str | None) -> str | None:
    """Map a date range (``day``, ``week``, ``month``, ``year``) to its one-letter code."""
    if not date_range:
        return None
    return _DATE_RANGES.get(date_range.strip().lower())


def page_offset(page: int, per_page: int = 10) -> int:
    return (page - 1) * per_page if page > 1 else 0


def favicon_for(url: str) -> str | None:
    """Favicon service URL for the host of *url*."""
    host = urlparse(url).hostname
    if not host:
        return None
    return FAVICON_SERVICE.format(domain=host)


def breadcrumbs_from_url(url: str) -> list[Breadcrumb]:
    """Reconstruct breadcrumbs from a URL: the host, then each path segment.

    Each breadcrumb links to the URL prefix ending at that segment.
    """
    parsed = urlparse(url)
    if not parsed.hostname:
        return []
    base = f"{parsed.scheme or 'https'}://{parsed.netloc}"
    crumbs = [Breadcrumb(text=parsed.hostname, url=base + "/")]
    path = ""
    for segment in (s for s in parsed.path.split("/") if s):
        path = f"{path}/{segment}"
        crumbs.append(Breadcrumb(text=segment, url=base + path))
    return crumbs


class SearchEngine(ABC):
    """Abstract base class for search engine adapters.

    Subclasses implement:
      - name: Unique engine identifier (also the rate limiter key)
      - build_params(): Engine-specific query-string encoding
      - parse_results(): HTML to ``SearchResult`` list

    The base class owns the HTTP client, per-request User-Agent rotation and
    the transport error mapping.

    Args:
        user_agents: Pool of User-Agent strings; one is picked per request.
        accept_language: Accept-Language header value.
        connect_timeout: Connect timeout in seconds.
        timeout: Total request timeout in seconds.

    Raises:
        ConfigurationError: If an unknown option is passed.
    """

    base_url: str = ""

    def __init__(
        self,
        user_agents: list[str] | None = None,
        accept_language: str = "fr-FR,fr;q=0.9",
        connect_timeout: float = 10.0,
        timeout: float = 30.0,
        **kwargs: Any,
    ) -> None:
        if kwargs:
            raise ConfigurationError(f"Unknown options for {type(self).__name__}: {sorted(kwargs)}")
        self._user_agents = list(user_agents or DEFAULT_USER_AGENTS)
        self._accept_language = accept_language
        self._connect_timeout = connect_timeout
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique engine name (e.g., 'Google', 'DuckDuckGo')."""

    @abstractmethod
    def build_params(
        self,
        query: str,
        page: int,
        date_range: str | None = None,
        region: str | None = None,
        language: str | None = None,
    ) -> dict[str, Any]:
        """Build the query-string parameters for one results page."""

    @abstractmethod
    def parse_results(self, html: str) -> list[SearchResult]:
        """Parse a results page.

        Malformed entries are skipped. An empty page yields an empty list.

        Raises:
            ParseError: If the page is not a results page at all.
        """

    async def initialize(self) -> None:
        """Open the HTTP client. Called once during application startup."""
        self._client = httpx.AsyncClient(
            headers={
                "Accept": "text/html",
                "Accept-Language": self._accept_language,
            },
            timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
            follow_redirects=True,
        )
        logger.info("%s engine initialized", self.name)

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def pick_user_agent(self) -> str:
        return random.choice(self._user_agents)

    async def fetch(self, url: str, params: dict[str, Any] | None = None, accept: str | None = None) -> httpx.Response:
        """GET *url* with a freshly rotated User-Agent.

        The whole exchange, body included, must finish within the total timeout.

        Raises:
            FetchError: On transport failure or a non-success status.
        """
        if not self._client:
            raise FetchError(f"{self.name} client not initialized.")

        headers = {"User-Agent": self.pick_user_agent()}
        if accept:
            headers["Accept"] = accept

        try:
            async with asyncio.timeout(self._timeout):
                response = await self._client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except TimeoutError as e:
            raise FetchError(f"{self.name} exceeded the {self._timeout:g}s total timeout") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(f"{self.name} returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise FetchError(f"{self.name} request failed: {e}") from e
        return response

    async def search(
        self,
        query: str,
        page: int = 1,
        date_range: str | None = None,
        region: str | None = None,
        language: str | None = None,
    ) -> list[SearchResult]:
        """Fetch and parse one page of results.

        Args:
            query: The search query string.
            page: 1-based page number.
            date_range: Optional recency filter.
            region: Optional region code.
            language: Optional language code.

        Returns:
            Parsed results in backend order, each with ``score=0.0``.

        Raises:
            FetchError: The backend could not be reached.
            ParseError: The backend response was not a results page.
        """
        params = self.build_params(query, page, date_range, region, language)
        start = time.monotonic()
        response = await self.fetch(self.base_url, params=params)
        results = self.parse_results(response.text)
        logger.debug(
            "%s search: query=%s, page=%d, results=%d, took=%dms",
            self.name,
            query,
            page,
            len(results),
            int((time.monotonic() - start) * 1000),
        )
        return results

    async def quick_answer(self, query: str) -> QuickAnswer | None:
        """Direct answer for *query*, if the backend offers one."""
        return None

    async def health_check(self) -> EngineHealth:
        """Check the backend answers a lightweight request."""
        if not self._client:
            return EngineHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            response = await self._client.get(self.base_url, headers={"User-Agent": self.pick_user_agent()})
            latency_ms = int((time.monotonic() - start) * 1000)
            status = "healthy" if response.status_code < 400 else "degraded"
            return EngineHealth(
                status=status,
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"HTTP {response.status_code}",
            )
        except Exception as e:
            return EngineHealth(status="unhealthy", message=str(e))
