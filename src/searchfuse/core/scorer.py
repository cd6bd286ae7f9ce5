"""Result Scorer — Relevance scoring, ordering and near-duplicate removal.

Pure and deterministic: no I/O, no clock, no randomness. Every constant is
read from ``ScoringSettings``.

Pipeline (``rank``):
  1. score: weighted text relevance of title / snippet / link plus bonuses
     and penalties, rounded to 2 decimals
  2. sort: score descending, then title, then link ascending
  3. dedup: first-seen wins against every accepted result
"""

from __future__ import annotations

import re
import string
from urllib.parse import urlparse

from rapidfuzz.distance import Levenshtein

from searchfuse.config.settings import ScoringSettings
from searchfuse.models.result import SearchResult

_TITLE_SEPARATOR = re.compile(r"\s[-|—–·»]\s")
_STRIP_CHARS = string.punctuation + string.whitespace


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]; 1.0 for identical strings."""
    return Levenshtein.normalized_similarity(a, b)


def normalize_link(url: str) -> str:
    """Canonical form of a URL for duplicate detection.

    Keeps host and path only, drops a leading ``www.`` and any trailing
    slash, and lowercases the result::

        https://www.Example.com/Docs/  ->  example.com/docs
    """
    raw = url.strip()
    parsed = urlparse(raw)
    if not parsed.netloc:
        parsed = urlparse("//" + raw.split("://", 1)[-1])
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return (host + parsed.path.rstrip("/")).lower()


def link_host(url: str) -> str:
    """Lowercased host of *url* without a leading ``www.``."""
    return normalize_link(url).split("/", 1)[0]


def normalize_text(text: str) -> str:
    return " ".join(text.lower().split()).strip(_STRIP_CHARS)


def _domain_matches(host: str, domains: list[str]) -> bool:
    for domain in domains:
        domain = domain.lower().lstrip(".")
        if host == domain or host.endswith("." + domain):
            return True
    return False


class ResultScorer:
    """Heuristic relevance scorer.

    Args:
        settings: Scoring constants. Uses defaults if None.
    """

    def __init__(self, settings: ScoringSettings | None = None) -> None:
        self.settings = settings or ScoringSettings()

    # ── Scoring ──────────────────────────────────────────────────────────

    def text_relevance(self, text: str, query: str) -> float:
        """Blend of fuzzy similarity, exact containment and query-term coverage."""
        text_lower = text.lower()
        query_lower = query.lower().strip()
        if not query_lower:
            return 0.0

        fuzzy = similarity(text_lower, query_lower)
        exact = 1.0 if query_lower in text_lower else 0.0
        terms = query_lower.split()
        term_ratio = sum(1 for term in terms if term in text_lower) / len(terms)

        s = self.settings
        return s.levenshtein_weight * fuzzy + s.exact_match_weight * exact + s.term_ratio_weight * term_ratio

    def is_exact_title_match(self, title: str, query: str) -> bool:
        """Title equals the query, ignoring case, spacing and a trailing site-name segment.

        ``"Rust Ownership - The Book"`` matches ``"rust ownership"``.
        """
        q = normalize_text(query)
        if not q:
            return False
        if normalize_text(title) == q:
            return True
        head = _TITLE_SEPARATOR.split(title, maxsplit=1)[0]
        return normalize_text(head) == q

    def score(self, result: SearchResult, query: str) -> float:
        """Relevance of *result* to *query*, rounded to 2 decimals."""
        s = self.settings

        value = (
            s.title_weight * self.text_relevance(result.title, query)
            + s.snippet_weight * self.text_relevance(result.snippet, query)
            + s.link_weight * self.text_relevance(result.link, query)
        )

        if result.link.lower().startswith("https"):
            value += s.https_bonus

        snippet_length = len(result.snippet)
        too_long = s.max_snippet_length is not None and snippet_length > s.max_snippet_length
        if snippet_length < s.min_snippet_length or too_long:
            value *= s.snippet_length_penalty

        host = link_host(result.link)
        if s.blocked_domains and _domain_matches(host, s.blocked_domains):
            value *= s.blocked_domain_penalty
        if s.trusted_domains and _domain_matches(host, s.trusted_domains):
            value += s.trusted_domain_bonus

        haystacks = (result.title.lower(), result.snippet.lower(), result.link.lower())
        if any(keyword.lower() in text for keyword in s.intent_keywords for text in haystacks):
            value += s.intent_bonus

        if self.is_exact_title_match(result.title, query):
            value += s.exact_title_bonus
        q = normalize_text(query)
        if q and normalize_text(result.snippet) == q:
            value += s.exact_snippet_bonus

        return round(value, 2)

    # ── Ordering ─────────────────────────────────────────────────────────

    @staticmethod
    def sort(results: list[SearchResult]) -> list[SearchResult]:
        """Score descending, then title and link ascending.

        Snippet and engine break any remaining ties so the order is total and
        independent of input order.
        """
        return sorted(results, key=lambda r: (-r.score, r.title, r.link, r.snippet, r.engine))

    # ── Deduplication ────────────────────────────────────────────────────

    def is_duplicate(self, a: SearchResult, b: SearchResult) -> bool:
        """Whether *a* and *b* point at the same content."""
        link_a, link_b = normalize_link(a.link), normalize_link(b.link)
        if link_a == link_b:
            return True
        if similarity(link_a, link_b) > self.settings.duplicate_link_similarity:
            return True
        title_a = a.title.strip()
        if title_a and title_a == b.title.strip():
            return True
        snippet_a = a.snippet.strip()
        return bool(snippet_a) and snippet_a == b.snippet.strip()

    def dedup(self, results: list[SearchResult]) -> list[SearchResult]:
        """Drop every result that duplicates an earlier accepted one."""
        accepted: list[SearchResult] = []
        for result in results:
            if not any(self.is_duplicate(result, kept) for kept in accepted):
                accepted.append(result)
        return accepted

    # ── Full pipeline ────────────────────────────────────────────────────

    def rank(self, results: list[SearchResult], query: str) -> list[SearchResult]:
        """Score every result in place, then sort and dedup."""
        for result in results:
            result.score = self.score(result, query)
        return self.dedup(self.sort(results))
