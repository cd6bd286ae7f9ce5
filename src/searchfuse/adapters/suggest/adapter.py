"""Suggestion client — Query autocompletion from Google's complete endpoint.

The endpoint answers with an XSSI guard line followed by JSON arrays, one per
line::

    )]}'
    [[["rust ownership",0,[512]],["rust ownership rules",0,[512,433]]],{"q":"..."}]

The first element of the first array is the list of suggestions; the first
element of each suggestion is its text (sometimes with ``<b>`` markup).
"""

from __future__ import annotations

import json
import asyncio
import logging
import random
from typing import Any

import httpx
from bs4 import BeautifulSoup

from searchfuse.adapters.base.exceptions import FetchError
from searchfuse.config.settings import DEFAULT_USER_AGENTS

logger = logging.getLogger(__name__)


def parse_suggestions(body: str) -> list[str]:
    """Extract suggestion strings from a line-delimited JSON-array body.

    Lines that are not JSON arrays are ignored, as are entries without a
    leading string.
    """
    suggestions: list[str] = []
    for line in body.splitlines():
        if not line.startswith("["):
            continue
        try:
            payload = json.loads(line)
        except ValueError:
            continue
        if not payload or not isinstance(payload[0], list):
            continue
        for entry in payload[0]:
            if isinstance(entry, list) and entry and isinstance(entry[0], str):
                text = entry[0]
                if "<" in text:
                    text = BeautifulSoup(text, "html.parser").get_text()
                if text:
                    suggestions.append(text)
    return suggestions


class SuggestionClient:
    """Fetches autocomplete suggestions from one fixed upstream.

    Args:
        base_url: Suggestion endpoint.
        user_agents: Pool of User-Agent strings; one is picked per request.
        accept_language: Accept-Language header value.
        connect_timeout: Connect timeout in seconds.
        timeout: Total request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = "https://www.google.com/complete/search",
        user_agents: list[str] | None = None,
        accept_language: str = "fr-FR,fr;q=0.9",
        connect_timeout: float = 10.0,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url
        self._user_agents = list(user_agents or DEFAULT_USER_AGENTS)
        self._accept_language = accept_language
        self._connect_timeout = connect_timeout
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        self._client = httpx.AsyncClient(
            headers={"Accept-Language": self._accept_language},
            timeout=httpx.Timeout(self._timeout, connect=self._connect_timeout),
        )

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def build_params(query: str) -> dict[str, Any]:
        return {"q": query, "client": "gws-wiz-serp", "xssi": "t", "hl": "fr"}

    async def suggest(self, query: str) -> list[str]:
        """Suggestions for *query*, in upstream order.

        Raises:
            FetchError: The upstream could not be reached or answered with an error.
        """
        if not self._client:
            raise FetchError("Suggestion client not initialized.")

        try:
            async with asyncio.timeout(self._timeout):
                response = await self._client.get(
                    self._base_url,
                    params=self.build_params(query),
                    headers={"User-Agent": random.choice(self._user_agents)},
                )
            response.raise_for_status()
        except TimeoutError as e:
            raise FetchError(f"Suggestion request exceeded the {self._timeout:g}s total timeout") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(f"Suggestion upstream returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise FetchError(f"Suggestion request failed: {e}") from e

        suggestions = parse_suggestions(response.text)
        logger.debug("Autocomplete: query=%s, suggestions=%d", query, len(suggestions))
        return suggestions
