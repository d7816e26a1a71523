"""
Insight Pipeline Schemas

Pydantic models for data flowing between the pipeline services:
card context handed to the generators and the validated summary shape.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _clean_items(values: list[str]) -> list[str]:
    """Strip items and drop blanks and case-insensitive duplicates (order kept)."""
    seen: set[str] = set()
    cleaned: list[str] = []
    for value in values:
        item = " ".join(value.split())
        key = item.casefold()
        if item and key not in seen:
            seen.add(key)
            cleaned.append(item)
    return cleaned


class CardContext(BaseModel):
    """Text of a card as seen by the generators."""

    title: str
    description: str | None = None
    column: str | None = None
    cluster_label: str | None = None

    def render(self) -> str:
        """Single-line rendering used inside prompts."""
        text = self.title
        if self.description:
            text = f"{text}: {self.description}"
        return " ".join(text.split())


class SummaryContent(BaseModel):
    """
    Structured board summary returned by the generative provider.

    Accepts both snake_case and camelCase keys (``top_ideas``/``topIdeas``).
    All three keys are required; a response missing one is malformed.

    Attributes:
        themes: Distinct themes (set semantics, first occurrence order).
        top_ideas: Most promising ideas, best first.
        next_steps: Concrete follow-up actions, in order.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    themes: list[str]
    top_ideas: list[str] = Field(
        validation_alias=AliasChoices("top_ideas", "topIdeas"),
    )
    next_steps: list[str] = Field(
        validation_alias=AliasChoices("next_steps", "nextSteps"),
    )

    @field_validator("themes", "top_ideas", "next_steps")
    @classmethod
    def _normalize(cls, values: list[str]) -> list[str]:
        return _clean_items(values)
