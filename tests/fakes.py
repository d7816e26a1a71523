"""
In-memory test doubles for the insight pipeline.

``FakeBoardStore`` mirrors ``BoardRepository`` (same method names and
semantics) on plain dicts, so the orchestrator and the HTTP layer can be
exercised without Postgres.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from collections.abc import Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

from brainboard.core.exceptions import ProviderError
from brainboard.models.orm import (
    SUGGESTION_IDLE,
    SUGGESTION_READY,
    BoardRecord,
    CardRecord,
    ClusterRecord,
    ColumnRecord,
    SuggestionRecord,
    SummaryRecord,
    compute_content_hash,
    embedding_text,
)
from brainboard.models.schemas import SummaryContent

_EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


class FakeBoardStore:
    """Dict-backed stand-in for ``BoardRepository``."""

    def __init__(self) -> None:
        self.boards: dict[uuid.UUID, BoardRecord] = {}
        self.columns: dict[uuid.UUID, ColumnRecord] = {}
        self.cards: dict[uuid.UUID, CardRecord] = {}
        self.suggestions: dict[uuid.UUID, SuggestionRecord] = {}
        self.clusters: dict[uuid.UUID, list[ClusterRecord]] = {}
        self.summaries: list[SummaryRecord] = []
        self.replace_calls = 0
        self._tick = 0

    def _now(self) -> datetime:
        # Strictly increasing so "most recent" is unambiguous
        self._tick += 1
        return _EPOCH + timedelta(seconds=self._tick)

    # Boards and columns

    async def create_board(
        self, name: str, column_names: Sequence[str] = ()
    ) -> tuple[BoardRecord, list[ColumnRecord]]:
        board = BoardRecord(id=uuid.uuid4(), name=name, created_at=self._now())
        self.boards[board.id] = board
        columns = [
            ColumnRecord(id=uuid.uuid4(), board_id=board.id, name=col, position=i)
            for i, col in enumerate(column_names)
        ]
        for column in columns:
            self.columns[column.id] = column
        return board, columns

    async def get_board(self, board_id: uuid.UUID) -> BoardRecord | None:
        return self.boards.get(board_id)

    async def list_boards(self, skip: int = 0, limit: int = 100) -> list[BoardRecord]:
        ordered = sorted(self.boards.values(), key=lambda b: b.created_at, reverse=True)
        return ordered[skip : skip + limit]

    async def add_column(
        self, board_id: uuid.UUID, name: str, position: int | None = None
    ) -> ColumnRecord:
        if position is None:
            position = len(await self.list_columns(board_id))
        column = ColumnRecord(
            id=uuid.uuid4(), board_id=board_id, name=name, position=position
        )
        self.columns[column.id] = column
        return column

    async def list_columns(self, board_id: uuid.UUID) -> list[ColumnRecord]:
        return sorted(
            (c for c in self.columns.values() if c.board_id == board_id),
            key=lambda c: (c.position, c.name),
        )

    # Cards

    async def create_card(
        self,
        board_id: uuid.UUID,
        *,
        title: str,
        description: str | None = None,
        column_id: uuid.UUID | None = None,
        mood: str | None = None,
        suggestion_status: str = SUGGESTION_IDLE,
    ) -> CardRecord:
        card = CardRecord(
            id=uuid.uuid4(),
            board_id=board_id,
            column_id=column_id,
            title=title,
            description=description,
            mood=mood,
            content_hash=compute_content_hash(title, description),
            embedding=None,
            embedding_hash=None,
            cluster_label=None,
            suggestion_status=suggestion_status,
            suggestion_error=None,
            created_at=self._now(),
            updated_at=None,
        )
        self.cards[card.id] = card
        return card

    async def get_card(self, card_id: uuid.UUID) -> CardRecord | None:
        return self.cards.get(card_id)

    async def list_cards(self, board_id: uuid.UUID) -> list[CardRecord]:
        return sorted(
            (c for c in self.cards.values() if c.board_id == board_id),
            key=lambda c: (c.created_at, str(c.id)),
        )

    async def update_card(
        self, card_id: uuid.UUID, changes: dict[str, Any]
    ) -> CardRecord | None:
        card = self.cards.get(card_id)
        if card is None:
            return None
        for field, value in changes.items():
            setattr(card, field, value)
        new_hash = compute_content_hash(card.title, card.description)
        if new_hash != card.content_hash:
            card.content_hash = new_hash
            card.embedding = None
            card.embedding_hash = None
        card.updated_at = self._now()
        return card

    async def delete_card(self, card_id: uuid.UUID) -> bool:
        return self.cards.pop(card_id, None) is not None

    async def set_suggestion_status(
        self, card_id: uuid.UUID, status: str, error: str | None = None
    ) -> None:
        card = self.cards[card_id]
        card.suggestion_status = status
        card.suggestion_error = error

    async def store_embedding(
        self, card_id: uuid.UUID, content_hash: str, vector: list[float]
    ) -> bool:
        card = self.cards.get(card_id)
        if card is None or card.content_hash != content_hash:
            return False
        card.embedding = list(vector)
        card.embedding_hash = content_hash
        return True

    # Suggestions

    async def save_suggestions(
        self, card: CardRecord, contents: Sequence[str]
    ) -> list[SuggestionRecord]:
        records = []
        for text in contents:
            record = SuggestionRecord(
                id=uuid.uuid4(),
                board_id=card.board_id,
                card_id=card.id,
                content=text,
                accepted=False,
                created_at=self._now(),
            )
            self.suggestions[record.id] = record
            records.append(record)
        await self.set_suggestion_status(card.id, SUGGESTION_READY)
        return records

    async def get_suggestion(self, suggestion_id: uuid.UUID) -> SuggestionRecord | None:
        return self.suggestions.get(suggestion_id)

    async def list_suggestions(self, card_id: uuid.UUID) -> list[SuggestionRecord]:
        return sorted(
            (s for s in self.suggestions.values() if s.card_id == card_id),
            key=lambda s: s.created_at,
        )

    async def set_suggestion_accepted(
        self, suggestion_id: uuid.UUID, accepted: bool
    ) -> SuggestionRecord | None:
        suggestion = self.suggestions.get(suggestion_id)
        if suggestion is not None:
            suggestion.accepted = accepted
        return suggestion

    # Clustering

    async def replace_clustering(
        self,
        board_id: uuid.UUID,
        labels: dict[uuid.UUID, str | None],
        embeddings: dict[uuid.UUID, tuple[str, list[float]]],
        clusters: Sequence[ClusterRecord],
    ) -> None:
        self.replace_calls += 1
        for card in await self.list_cards(board_id):
            card.cluster_label = labels.get(card.id)
        for card_id, (content_hash, vector) in embeddings.items():
            await self.store_embedding(card_id, content_hash, vector)
        sizes = Counter(
            card.cluster_label
            for card in await self.list_cards(board_id)
            if card.cluster_label is not None
        )
        for cluster in clusters:
            cluster.card_count = sizes.get(cluster.label, 0)
        self.clusters[board_id] = list(clusters)

    async def list_clusters(self, board_id: uuid.UUID) -> list[ClusterRecord]:
        return list(self.clusters.get(board_id, []))

    # Summaries

    async def append_summary(
        self, board_id: uuid.UUID, content: SummaryContent
    ) -> SummaryRecord:
        record = SummaryRecord(
            id=uuid.uuid4(),
            board_id=board_id,
            themes=content.themes,
            top_ideas=content.top_ideas,
            next_steps=content.next_steps,
            created_at=self._now(),
        )
        self.summaries.append(record)
        return record

    async def latest_summary(self, board_id: uuid.UUID) -> SummaryRecord | None:
        history = await self.list_summaries(board_id, limit=1)
        return history[0] if history else None

    async def list_summaries(
        self, board_id: uuid.UUID, limit: int = 20
    ) -> list[SummaryRecord]:
        own = [s for s in self.summaries if s.board_id == board_id]
        return sorted(own, key=lambda s: s.created_at, reverse=True)[:limit]


class FakeEmbedder:
    """
    Embedding provider with scripted vectors.

    Texts listed in ``vectors`` get that vector; others get a vector
    derived from their length. Texts in ``failing`` raise ``ProviderError``.
    If ``gate`` is set, every call waits for it first.
    """

    name = "fake"

    def __init__(self, dimension: int = 2) -> None:
        self.dimension = dimension
        self.vectors: dict[str, list[float]] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    def set_card_vector(self, title: str, vector: list[float], description: str | None = None):
        self.vectors[embedding_text(title, description)] = vector

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if text in self.failing:
            raise ProviderError(self.name, f"cannot embed {text!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        return [float(len(text))] + [0.0] * (self.dimension - 1)

    async def close(self) -> None:
        self.closed = True


class FakeGenerator:
    """
    Text generator replaying queued responses.

    Each queued item is either a string (returned) or an exception
    (raised). With an empty queue ``default`` is returned. If ``gate`` is
    set, every call waits for it first.
    """

    name = "fake"

    def __init__(self, default: str = '{"suggestions": ["Idea A", "Idea B", "Idea C"]}'):
        self.default = default
        self.responses: list[str | Exception] = []
        self.prompts: list[str] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    def queue(self, *responses: str | Exception) -> None:
        self.responses.extend(responses)

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        json_mode: bool = False,
    ) -> str:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            return self.default
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


@asynccontextmanager
async def running(orchestrator):
    """Start the orchestrator's suggestion workers for the duration of a test."""
    await orchestrator.start()
    try:
        yield orchestrator
    finally:
        await orchestrator.close()
