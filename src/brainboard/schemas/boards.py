"""
Board API Schemas

Pydantic models for the board, card and insight endpoints.
Separates concerns: *Create (input), *Update (partial), *Read (output).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ColumnCreate(BaseModel):
    """Request schema for POST /boards/{id}/columns."""

    name: str = Field(..., min_length=1, max_length=100)
    position: int | None = Field(
        default=None,
        ge=0,
        description="Position on the board (appended when omitted)",
    )


class ColumnRead(BaseModel):
    id: UUID
    name: str
    position: int

    model_config = ConfigDict(from_attributes=True)


class BoardCreate(BaseModel):
    """Request schema for POST /boards."""

    name: str = Field(..., min_length=1, max_length=200)
    columns: list[str] = Field(
        default_factory=lambda: ["Ideas"],
        description="Initial column names, left to right",
    )


class BoardRead(BaseModel):
    id: UUID
    name: str
    created_at: datetime
    columns: list[ColumnRead] = Field(default_factory=list)


class CardCreate(BaseModel):
    """Request schema for POST /boards/{id}/cards."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    column_id: UUID | None = None
    mood: str | None = Field(default=None, max_length=32)


class CardUpdate(BaseModel):
    """
    Request schema for PATCH /cards/{id}.

    All fields optional to support partial updates. Changing title or
    description invalidates the card's embedding.
    """

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    column_id: UUID | None = None
    mood: str | None = Field(None, max_length=32)


class CardRead(BaseModel):
    id: UUID
    board_id: UUID
    column_id: UUID | None = None
    title: str
    description: str | None = None
    cluster_label: str | None = None
    mood: str | None = None
    suggestion_status: str
    suggestion_error: str | None = None
    has_embedding: bool = False
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SuggestionRead(BaseModel):
    id: UUID
    card_id: UUID | None = None
    content: str
    accepted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SuggestionUpdate(BaseModel):
    """Request schema for PATCH /suggestions/{id}."""

    accepted: bool


class SuggestionJobResponse(BaseModel):
    """Response for a queued suggestion request (202)."""

    card_id: UUID
    status: str = Field(description="Card suggestion status after queueing")


class ClusterRead(BaseModel):
    cluster_index: int
    label: str
    name: str
    color: str
    card_count: int

    model_config = ConfigDict(from_attributes=True)


class ClusterResponse(BaseModel):
    """Result of POST /boards/{id}/cluster."""

    board_id: UUID
    k: int = Field(description="Number of clusters produced")
    iterations: int
    converged: bool
    clusters: list[ClusterRead]
    assignments: dict[UUID, str | None] = Field(
        description="Card id to cluster label (None for skipped cards)"
    )
    skipped_cards: list[UUID] = Field(default_factory=list)


class SummaryRead(BaseModel):
    id: UUID
    board_id: UUID
    themes: list[str]
    top_ideas: list[str]
    next_steps: list[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
