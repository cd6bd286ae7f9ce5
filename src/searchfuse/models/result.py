"""Search result model — One ranked hit produced by an engine adapter.

Results are created fresh per engine call with ``score=0.0``. The scorer is
the only component that assigns ``score``; ordering by score is meaningless
before scoring has run.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, TypeAdapter


class Breadcrumb(BaseModel):
    """One segment of a result's site hierarchy."""

    text: str = Field(description="Display text of the segment")
    url: str | None = Field(default=None, description="URL of the segment, when known")


class SearchResult(BaseModel):
    """A single search hit, normalized across engines.

    Examples:
        ::

            SearchResult(
                title="Rust Ownership - The Book",
                link="https://doc.rust-lang.org/book/ch04-00.html",
                snippet="Ownership is Rust's most unique feature ...",
                source="Google",
                engine="Google",
                site_name="doc.rust-lang.org",
                breadcrumbs=[Breadcrumb(text="doc.rust-lang.org"), Breadcrumb(text="book")],
            )
    """

    title: str = Field(description="Result title")
    link: str = Field(description="Absolute URL of the result")
    snippet: str = Field(default="", description="Text excerpt shown under the title")
    source: str = Field(description="Backend that produced the result")
    engine: str = Field(description="Engine name that produced the result")
    score: float = Field(default=0.0, description="Relevance score, assigned by the scorer")
    favicon_url: str | None = Field(default=None, description="Favicon of the result's site")
    site_name: str | None = Field(default=None, description="Human readable site name")
    breadcrumbs: list[Breadcrumb] = Field(default_factory=list, description="Reconstructed site path")


SearchResultList = TypeAdapter(list[SearchResult])
