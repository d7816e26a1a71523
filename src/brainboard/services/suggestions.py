"""
Suggestion Generator

Produces two or three follow-up ideas for a card, using up to five
sibling cards as context. Output parsing accepts a JSON object
(``{"suggestions": [...]}``), a bare JSON array, or bullet/numbered
lines, since not every model honours JSON mode.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Final

from brainboard.core.exceptions import MalformedResponse
from brainboard.models.schemas import CardContext
from brainboard.services.llm import TextGenerator, strip_code_fences

logger = logging.getLogger(__name__)

MAX_SIBLINGS: Final[int] = 5
MIN_SUGGESTIONS: Final[int] = 2
MAX_SUGGESTIONS: Final[int] = 3

SYSTEM_PROMPT: Final[str] = (
    "You are a brainstorming partner. You propose short, concrete ideas that "
    "build on the idea the user is working on. Each idea is one sentence, "
    "different from the existing ideas on the board."
)

PROMPT_TEMPLATE: Final[str] = """Idea being developed:
{card}

Other ideas on the board:
{siblings}

Propose exactly {count} new ideas that extend or complement the idea being developed.
Respond with JSON only: {{"suggestions": ["...", "..."]}}"""

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def _normalize(text: str) -> str:
    return " ".join(text.split()).casefold()


class SuggestionGenerator:
    """
    Card context in, 2-3 suggestion strings out.

    Usage::

        generator = SuggestionGenerator(text_generator)
        ideas = await generator.generate(
            CardContext(title="Weekly demo day"),
            siblings=[CardContext(title="Hackathon")],
        )
    """

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    async def generate(
        self,
        card: CardContext,
        siblings: list[CardContext] | None = None,
        prior: list[str] | None = None,
    ) -> list[str]:
        """
        Generate suggestions for ``card``.

        Args:
            card: The card the ideas should build on.
            siblings: Context cards; only the first five are used.
            prior: Suggestions already stored for the card. Matching ideas
                (ignoring case and spacing) are dropped from the result.

        Returns:
            Two or three suggestions, in the provider's order.

        Raises:
            ProviderError: If the generation call fails.
            MalformedResponse: If fewer than two new ideas remain after
                parsing and dropping repeats.
        """
        prompt = self._build_prompt(card, (siblings or [])[:MAX_SIBLINGS])
        raw = await self._generator.generate(prompt, system=SYSTEM_PROMPT, json_mode=True)

        parsed = self._dedupe(self.parse(raw), exclude=[card.title])
        ideas = self._dedupe(parsed, exclude=prior or [])
        if len(ideas) < len(parsed):
            logger.info(
                "Dropped %d repeated suggestion(s) for '%s'",
                len(parsed) - len(ideas),
                card.title[:40],
            )
        if len(ideas) < MIN_SUGGESTIONS:
            raise MalformedResponse(
                f"Expected at least {MIN_SUGGESTIONS} new suggestions, got {len(ideas)}",
                raw=raw,
            )
        return ideas[:MAX_SUGGESTIONS]

    @staticmethod
    def parse(raw: str) -> list[str]:
        """Extract idea strings from a provider response."""
        text = strip_code_fences(raw)
        try:
            data = json.loads(text)
        except ValueError:
            lines = [_LIST_MARKER.sub("", line).strip() for line in text.splitlines()]
            return [line for line in lines if line]

        if isinstance(data, dict):
            data = data.get("suggestions", data.get("ideas"))
        if not isinstance(data, list):
            return []
        return [str(item).strip() for item in data if str(item).strip()]

    @staticmethod
    def _dedupe(ideas: list[str], exclude: list[str]) -> list[str]:
        seen = {_normalize(item) for item in exclude}
        unique: list[str] = []
        for idea in ideas:
            key = _normalize(idea)
            if key and key not in seen:
                seen.add(key)
                unique.append(" ".join(idea.split()))
        return unique

    @staticmethod
    def _build_prompt(card: CardContext, siblings: list[CardContext]) -> str:
        rendered = "\n".join(f"- {s.render()}" for s in siblings) or "- (none yet)"
        return PROMPT_TEMPLATE.format(
            card=card.render(),
            siblings=rendered,
            count=MAX_SUGGESTIONS,
        )
