"""
Board Database Models

SQLAlchemy 2.0 ORM models for boards, cards and the insight records
derived from them. Card embeddings use pgvector.

Tables:
    boards        — Brainstorming boards.
    board_columns — Ordered columns of a board.
    cards         — Ideas, with content hash, embedding and cluster label.
    suggestions   — Generated follow-up ideas (acceptance flag only mutable field).
    clusters      — Display metadata of the latest clustering run per board.
    summaries     — Append-only structured summaries.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from brainboard.models.base import Base, TimestampMixin, utcnow

SUGGESTION_IDLE = "idle"
SUGGESTION_PENDING = "pending"
SUGGESTION_READY = "ready"
SUGGESTION_FAILED = "failed"


def compute_content_hash(title: str, description: str | None) -> str:
    """SHA-256 fingerprint of the text a card's embedding is computed from."""
    text = f"{title}\n{description or ''}"
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def embedding_text(title: str, description: str | None) -> str:
    """Text sent to the embedding provider for a card."""
    if description:
        return f"{title}\n{description}"
    return title


class BoardRecord(Base, TimestampMixin):
    """A brainstorming board. Owns its columns and cards (cascade delete)."""

    __tablename__ = "boards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<BoardRecord(id={self.id!s:.8}, name='{self.name}')>"


class ColumnRecord(Base):
    """Ordered column of a board (e.g. 'Ideas', 'Doing', 'Done')."""

    __tablename__ = "board_columns"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CardRecord(Base, TimestampMixin):
    """
    A card (idea) on a board.

    Attributes:
        content_hash: SHA-256 of title + description, recomputed on edit.
        embedding: Vector of the provider in use (nullable until clustered).
        embedding_hash: content_hash the stored embedding was computed from.
            Always equal to content_hash when embedding is set.
        cluster_label: Label from the most recent clustering run, or None.
        suggestion_status: idle | pending | ready | failed.
    """

    __tablename__ = "cards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    column_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("board_columns.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # Unsized: dimensionality depends on the configured embedding provider
    embedding: Mapped[Any | None] = mapped_column(Vector(), nullable=True)
    embedding_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cluster_label: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mood: Mapped[str | None] = mapped_column(String(32), nullable=True)
    suggestion_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SUGGESTION_IDLE
    )
    suggestion_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None and self.embedding_hash == self.content_hash

    def __repr__(self) -> str:
        return f"<CardRecord(id={self.id!s:.8}, title='{self.title[:20]}')>"


class SuggestionRecord(Base):
    """Generated idea. Only ``accepted`` changes after creation."""

    __tablename__ = "suggestions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    card_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("cards.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class ClusterRecord(Base):
    """Display metadata for one cluster of the latest run on a board."""

    __tablename__ = "clusters"
    __table_args__ = (
        UniqueConstraint("board_id", "cluster_index", name="uq_clusters_board_index"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cluster_index: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    color: Mapped[str] = mapped_column(String(16), nullable=False)
    card_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    centroid: Mapped[list[float]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class SummaryRecord(Base):
    """Structured board summary. Rows are never updated."""

    __tablename__ = "summaries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    themes: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    top_ideas: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    next_steps: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
