"""Query models and cache key construction."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SearchParams(BaseModel):
    """Parameters of one search call."""

    query: str = Field(description="User query", min_length=1, max_length=2000)
    page: int = Field(default=1, ge=1, description="1-based result page")
    date_range: str | None = Field(default=None, description="Recency filter: day, week, month, year")
    region: str | None = Field(default=None, description="Region code passed to engines")
    language: str | None = Field(default=None, description="Language code passed to engines")

    @property
    def cache_key(self) -> str:
        """Deterministic key ``search:{query}:{page}:{date_range}:{region}:{language}``.

        Missing optional values render as empty strings.
        """
        return ":".join(
            [
                "search",
                self.query,
                str(self.page),
                self.date_range or "",
                self.region or "",
                self.language or "",
            ]
        )


def autocomplete_key(query: str) -> str:
    return f"autocomplete:{query}"


def quick_answer_key(query: str) -> str:
    return f"quick_answer:{query}"
