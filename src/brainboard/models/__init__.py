"""Models package — SQLAlchemy ORM records and pipeline schemas."""

from brainboard.models.base import Base, TimestampMixin
from brainboard.models.orm import (
    BoardRecord,
    CardRecord,
    ClusterRecord,
    ColumnRecord,
    SuggestionRecord,
    SummaryRecord,
    compute_content_hash,
)
from brainboard.models.schemas import CardContext, SummaryContent

__all__ = [
    # SQLAlchemy ORM (persistence layer)
    "Base",
    "TimestampMixin",
    "BoardRecord",
    "CardRecord",
    "ClusterRecord",
    "ColumnRecord",
    "SuggestionRecord",
    "SummaryRecord",
    "compute_content_hash",
    # Pydantic schemas (insight pipeline)
    "CardContext",
    "SummaryContent",
]
