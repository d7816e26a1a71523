"""
Board Summarizer

Turns a board's columns, cluster assignment and a bounded set of
representative cards into a structured summary
``{themes, top_ideas, next_steps}``.

Top-card selection:
    Cards are grouped by cluster label (unclustered cards form one group).
    Each group contributes its most recent ``per_cluster`` cards; groups
    are taken largest first and the total is capped at ``max_cards``.

Validation:
    The response must parse into ``SummaryContent``. On failure the call
    is retried once with a stricter prompt, then ``MalformedResponse``.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Final, Protocol, TypeVar

from pydantic import ValidationError

from brainboard.core.exceptions import MalformedResponse
from brainboard.models.schemas import CardContext, SummaryContent
from brainboard.services.llm import TextGenerator, strip_code_fences

logger = logging.getLogger(__name__)

DEFAULT_CARDS_PER_CLUSTER: Final[int] = 3
DEFAULT_MAX_CARDS: Final[int] = 30

SYSTEM_PROMPT: Final[str] = (
    "You summarize brainstorming boards for a team. You only use the ideas "
    "provided. You answer with a single JSON object."
)

PROMPT_TEMPLATE: Final[str] = """Board: {board}

Columns (card counts):
{columns}

Idea clusters (card counts):
{clusters}

Representative ideas:
{cards}

Summarize the board as JSON with exactly these keys:
- "themes": list of short theme names,
- "top_ideas": list of the most promising ideas, best first,
- "next_steps": list of concrete next actions, in order."""

STRICT_SUFFIX: Final[str] = """

Your previous answer could not be parsed. Reply with ONLY this JSON object,
no prose and no Markdown:
{"themes": ["..."], "top_ideas": ["..."], "next_steps": ["..."]}"""


class _SelectableCard(Protocol):
    cluster_label: str | None
    created_at: datetime


C = TypeVar("C", bound=_SelectableCard)


def select_top_cards(
    cards: Sequence[C],
    per_cluster: int = DEFAULT_CARDS_PER_CLUSTER,
    max_cards: int = DEFAULT_MAX_CARDS,
) -> list[C]:
    """Most recent ``per_cluster`` cards of each cluster, largest cluster first."""
    groups: dict[str | None, list[C]] = defaultdict(list)
    for card in cards:
        groups[card.cluster_label].append(card)

    ordered_groups = sorted(
        groups.items(),
        key=lambda item: (-len(item[1]), item[0] is None, item[0] or ""),
    )
    selected: list[C] = []
    for _, members in ordered_groups:
        recent = sorted(members, key=lambda card: card.created_at, reverse=True)
        selected.extend(recent[:per_cluster])
    return selected[:max_cards]


class Summarizer:
    """
    Structured board summaries from a generative provider.

    Usage::

        summarizer = Summarizer(text_generator)
        content = await summarizer.summarize(
            "Offsite", columns={"Ideas": 4}, cluster_sizes={"0": 2, "1": 2}, cards=cards
        )
    """

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    async def summarize(
        self,
        board_name: str,
        columns: dict[str, int],
        cluster_sizes: dict[str, int],
        cards: list[CardContext],
    ) -> SummaryContent:
        """
        Generate and validate a summary.

        Raises:
            ProviderError: If a generation call fails.
            MalformedResponse: If both attempts return unparseable output.
        """
        prompt = self._build_prompt(board_name, columns, cluster_sizes, cards)

        raw = await self._generator.generate(prompt, system=SYSTEM_PROMPT, json_mode=True)
        try:
            return self.parse(raw)
        except MalformedResponse as e:
            logger.warning("Summary response malformed, retrying strictly: %s", e)

        raw = await self._generator.generate(
            prompt + STRICT_SUFFIX, system=SYSTEM_PROMPT, json_mode=True
        )
        return self.parse(raw)

    @staticmethod
    def parse(raw: str) -> SummaryContent:
        """Validate a provider response against the summary shape."""
        try:
            data = json.loads(strip_code_fences(raw))
        except ValueError as e:
            raise MalformedResponse(f"Summary is not valid JSON: {e}", raw=raw) from e
        if not isinstance(data, dict):
            raise MalformedResponse("Summary must be a JSON object", raw=raw)
        try:
            return SummaryContent.model_validate(data)
        except ValidationError as e:
            raise MalformedResponse(
                f"Summary does not match the expected shape: {e.error_count()} error(s)",
                raw=raw,
            ) from e

    @staticmethod
    def _build_prompt(
        board_name: str,
        columns: dict[str, int],
        cluster_sizes: dict[str, int],
        cards: list[CardContext],
    ) -> str:
        column_lines = "\n".join(f"- {name}: {count}" for name, count in columns.items())
        cluster_lines = "\n".join(
            f"- cluster {label}: {count}" for label, count in cluster_sizes.items()
        )
        card_lines = "\n".join(
            f"- [{card.column or 'no column'} / cluster {card.cluster_label or '-'}] "
            f"{card.render()}"
            for card in cards
        )
        return PROMPT_TEMPLATE.format(
            board=board_name,
            columns=column_lines or "- (no columns)",
            clusters=cluster_lines or "- (not clustered yet)",
            cards=card_lines or "- (no ideas yet)",
        )
