"""Quick answer models — A single structured answer shown outside the ranked list."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter


class Definition(BaseModel):
    """Dictionary-style definition of a term."""

    kind: Literal["definition"] = "definition"
    term: str
    definition: str
    url: str | None = None


class Abstract(BaseModel):
    """Encyclopedia-style summary of a topic."""

    kind: Literal["abstract"] = "abstract"
    heading: str
    text: str
    url: str | None = None


Answer = Annotated[Definition | Abstract, Field(discriminator="kind")]


class QuickAnswer(BaseModel):
    """A direct answer plus the engine that produced it."""

    source: str = Field(description="Engine that produced the answer")
    answer: Answer = Field(description="The answer variant")


QuickAnswerAdapter = TypeAdapter(QuickAnswer)
