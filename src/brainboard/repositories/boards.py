"""
Board Repository

Data access for boards, cards and the insight records derived from
them. The repository owns its session factory: request handlers and
background suggestion jobs both call it without passing sessions.

Key guarantees:
    - ``replace_clustering``: atomic. Every card label of the board, the
      fresh embeddings and the cluster rows change in one transaction,
      or nothing changes.
    - ``update_card``: editing title or description clears the stored
      embedding, so a card never carries a vector of older content.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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
)
from brainboard.models.schemas import SummaryContent
from brainboard.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

_boards = BaseRepository(BoardRecord)
_columns = BaseRepository(ColumnRecord)
_cards = BaseRepository(CardRecord)
_suggestions = BaseRepository(SuggestionRecord)
_clusters = BaseRepository(ClusterRecord)
_summaries = BaseRepository(SummaryRecord)

CONTENT_FIELDS = frozenset({"title", "description"})


class BoardRepository:
    """
    Persistence for the brainstorming board and its insights.

    Usage::

        repo = BoardRepository(get_session_factory())
        board, columns = await repo.create_board("Offsite", ["Ideas", "Next"])
        card = await repo.create_card(board.id, title="Demo day")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Boards and columns
    # ------------------------------------------------------------------

    async def create_board(
        self, name: str, column_names: Sequence[str] = ()
    ) -> tuple[BoardRecord, list[ColumnRecord]]:
        async with self._session_factory() as session, session.begin():
            board = BoardRecord(id=uuid.uuid4(), name=name)
            session.add(board)
            await session.flush()  # board row must exist before its columns
            columns = [
                ColumnRecord(id=uuid.uuid4(), board_id=board.id, name=col, position=i)
                for i, col in enumerate(column_names)
            ]
            session.add_all(columns)

        logger.info("Created board '%s' with %d columns", name, len(columns))
        return board, columns

    async def get_board(self, board_id: uuid.UUID) -> BoardRecord | None:
        async with self._session_factory() as session:
            return await _boards.get_by_id(session, board_id)

    async def list_boards(self, skip: int = 0, limit: int = 100) -> Sequence[BoardRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(BoardRecord)
                .order_by(BoardRecord.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            return result.scalars().all()

    async def add_column(
        self, board_id: uuid.UUID, name: str, position: int | None = None
    ) -> ColumnRecord:
        async with self._session_factory() as session, session.begin():
            if position is None:
                existing = await _columns.list_by(
                    session, ColumnRecord.board_id == board_id
                )
                position = len(existing)
            column = ColumnRecord(
                id=uuid.uuid4(), board_id=board_id, name=name, position=position
            )
            session.add(column)
        return column

    async def list_columns(self, board_id: uuid.UUID) -> Sequence[ColumnRecord]:
        async with self._session_factory() as session:
            return await _columns.list_by(
                session,
                ColumnRecord.board_id == board_id,
                order_by=(ColumnRecord.position, ColumnRecord.name),
            )

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

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
            suggestion_status=suggestion_status,
        )
        async with self._session_factory() as session, session.begin():
            session.add(card)
        return card

    async def get_card(self, card_id: uuid.UUID) -> CardRecord | None:
        async with self._session_factory() as session:
            return await _cards.get_by_id(session, card_id)

    async def list_cards(self, board_id: uuid.UUID) -> Sequence[CardRecord]:
        """Cards of a board, oldest first."""
        async with self._session_factory() as session:
            return await _cards.list_by(
                session,
                CardRecord.board_id == board_id,
                order_by=(CardRecord.created_at, CardRecord.id),
            )

    async def update_card(
        self, card_id: uuid.UUID, changes: dict[str, Any]
    ) -> CardRecord | None:
        """
        Apply a partial update.

        A change of title or description recomputes ``content_hash``; if
        the hash differs, the stored embedding is dropped.
        """
        async with self._session_factory() as session, session.begin():
            card = await _cards.get_by_id(session, card_id)
            if card is None:
                return None

            values = dict(changes)
            if CONTENT_FIELDS & values.keys():
                new_hash = compute_content_hash(
                    values.get("title", card.title),
                    values.get("description", card.description),
                )
                if new_hash != card.content_hash:
                    values.update(
                        content_hash=new_hash, embedding=None, embedding_hash=None
                    )
            await _cards.update_fields(card, values)
        return card

    async def delete_card(self, card_id: uuid.UUID) -> bool:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(CardRecord).where(CardRecord.id == card_id)
            )
        return result.rowcount > 0

    async def set_suggestion_status(
        self, card_id: uuid.UUID, status: str, error: str | None = None
    ) -> None:
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(CardRecord)
                .where(CardRecord.id == card_id)
                .values(suggestion_status=status, suggestion_error=error)
            )

    async def store_embedding(
        self, card_id: uuid.UUID, content_hash: str, vector: list[float]
    ) -> bool:
        """Store a vector unless the card's content changed meanwhile."""
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(CardRecord)
                .where(CardRecord.id == card_id, CardRecord.content_hash == content_hash)
                .values(embedding=vector, embedding_hash=content_hash)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def save_suggestions(
        self, card: CardRecord, contents: Sequence[str]
    ) -> list[SuggestionRecord]:
        """Insert suggestions for a card and mark its status ready."""
        records = [
            SuggestionRecord(
                id=uuid.uuid4(), board_id=card.board_id, card_id=card.id, content=text
            )
            for text in contents
        ]
        async with self._session_factory() as session, session.begin():
            session.add_all(records)
            await session.execute(
                update(CardRecord)
                .where(CardRecord.id == card.id)
                .values(suggestion_status=SUGGESTION_READY, suggestion_error=None)
            )
        return records

    async def get_suggestion(self, suggestion_id: uuid.UUID) -> SuggestionRecord | None:
        async with self._session_factory() as session:
            return await _suggestions.get_by_id(session, suggestion_id)

    async def list_suggestions(self, card_id: uuid.UUID) -> Sequence[SuggestionRecord]:
        async with self._session_factory() as session:
            return await _suggestions.list_by(
                session,
                SuggestionRecord.card_id == card_id,
                order_by=(SuggestionRecord.created_at, SuggestionRecord.id),
            )

    async def set_suggestion_accepted(
        self, suggestion_id: uuid.UUID, accepted: bool
    ) -> SuggestionRecord | None:
        async with self._session_factory() as session, session.begin():
            suggestion = await _suggestions.get_by_id(session, suggestion_id)
            if suggestion is not None:
                suggestion.accepted = accepted
        return suggestion

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------

    async def replace_clustering(
        self,
        board_id: uuid.UUID,
        labels: dict[uuid.UUID, str | None],
        embeddings: dict[uuid.UUID, tuple[str, list[float]]],
        clusters: Sequence[ClusterRecord],
    ) -> None:
        """
        Replace the board's whole cluster assignment in one transaction.

        Args:
            board_id: Board being clustered.
            labels: Card id to new label. Cards of the board missing from
                the mapping get ``None`` (labels of older runs never survive).
            embeddings: Freshly computed (content hash, vector) per card.
                Skipped for cards edited since the hash was taken.
            clusters: Display rows of the new run.
        """
        async with self._session_factory() as session, session.begin():
            # Serialize writers of the same board across processes
            await session.execute(
                select(BoardRecord.id).where(BoardRecord.id == board_id).with_for_update()
            )
            await session.execute(
                update(CardRecord)
                .where(CardRecord.board_id == board_id)
                .values(cluster_label=None)
            )
            for card_id, label in labels.items():
                if label is None:
                    continue
                await session.execute(
                    update(CardRecord)
                    .where(CardRecord.id == card_id, CardRecord.board_id == board_id)
                    .values(cluster_label=label)
                )
            for card_id, (content_hash, vector) in embeddings.items():
                await session.execute(
                    update(CardRecord)
                    .where(
                        CardRecord.id == card_id,
                        CardRecord.content_hash == content_hash,
                    )
                    .values(embedding=vector, embedding_hash=content_hash)
                )
            # Sizes from the rows actually labelled; cards deleted mid-run drop out
            counted = await session.execute(
                select(CardRecord.cluster_label, func.count())
                .where(
                    CardRecord.board_id == board_id,
                    CardRecord.cluster_label.is_not(None),
                )
                .group_by(CardRecord.cluster_label)
            )
            sizes = dict(counted.tuples().all())
            for cluster in clusters:
                cluster.card_count = sizes.get(cluster.label, 0)
            await session.execute(
                delete(ClusterRecord).where(ClusterRecord.board_id == board_id)
            )
            session.add_all(clusters)

        logger.info(
            "Stored clustering for board %s: %d clusters, %d labelled cards, "
            "%d new embeddings",
            board_id,
            len(clusters),
            sum(1 for label in labels.values() if label is not None),
            len(embeddings),
        )

    async def list_clusters(self, board_id: uuid.UUID) -> Sequence[ClusterRecord]:
        async with self._session_factory() as session:
            return await _clusters.list_by(
                session,
                ClusterRecord.board_id == board_id,
                order_by=(ClusterRecord.cluster_index,),
            )

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def append_summary(
        self, board_id: uuid.UUID, content: SummaryContent
    ) -> SummaryRecord:
        record = SummaryRecord(
            id=uuid.uuid4(),
            board_id=board_id,
            themes=content.themes,
            top_ideas=content.top_ideas,
            next_steps=content.next_steps,
        )
        async with self._session_factory() as session, session.begin():
            session.add(record)
        return record

    async def latest_summary(self, board_id: uuid.UUID) -> SummaryRecord | None:
        async with self._session_factory() as session:
            rows = await _summaries.list_by(
                session,
                SummaryRecord.board_id == board_id,
                order_by=(SummaryRecord.created_at.desc(),),
                limit=1,
            )
            return rows[0] if rows else None

    async def list_summaries(
        self, board_id: uuid.UUID, limit: int = 20
    ) -> Sequence[SummaryRecord]:
        """Summary history, newest first."""
        async with self._session_factory() as session:
            return await _summaries.list_by(
                session,
                SummaryRecord.board_id == board_id,
                order_by=(SummaryRecord.created_at.desc(),),
                limit=limit,
            )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cards_without_embedding(
        self, board_id: uuid.UUID | None = None
    ) -> Sequence[CardRecord]:
        """Cards whose embedding is missing or older than their content."""
        async with self._session_factory() as session:
            criteria: list[Any] = [
                (CardRecord.embedding.is_(None))
                | (CardRecord.embedding_hash.is_distinct_from(CardRecord.content_hash))
            ]
            if board_id is not None:
                criteria.append(CardRecord.board_id == board_id)
            return await _cards.list_by(
                session, *criteria, order_by=(CardRecord.created_at,)
            )
