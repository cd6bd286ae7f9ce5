"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from searchfuse.config.settings import Settings
from searchfuse.models.result import SearchResult


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with an in-memory cache."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        cache={"backend": "memory", "flush_on_startup": False},
        observability={"log_format": "console"},
    )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ── SearchResult fixtures ──


@pytest.fixture
def rust_book_result() -> SearchResult:
    """Exact title match on an https, trusted domain."""
    return SearchResult(
        title="Rust Ownership - The Book",
        link="https://doc.rust-lang.org/book/ch04-00-understanding-ownership.html",
        snippet=(
            "Ownership is Rust's most unique feature and has deep implications "
            "for the rest of the language."
        ),
        source="Google",
        engine="Google",
    )


@pytest.fixture
def blog_result() -> SearchResult:
    """Short snippet on a plain http link."""
    return SearchResult(
        title="My thoughts on Rust",
        link="http://blog.example.com/rust",
        snippet="Short.",
        source="DuckDuckGo",
        engine="DuckDuckGo",
    )


@pytest.fixture
def make_result() -> Callable[..., SearchResult]:
    """Factory for results that only differ in the fields a test cares about."""

    def _make(title: str, link: str, snippet: str = "", engine: str = "Google", score: float = 0.0) -> SearchResult:
        return SearchResult(title=title, link=link, snippet=snippet, source=engine, engine=engine, score=score)

    return _make
