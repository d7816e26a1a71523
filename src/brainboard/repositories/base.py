"""
Base Repository

Generic helpers for async SQLAlchemy access, shared by the concrete
repositories. Methods take an externally managed session so several
calls can run inside one transaction.
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brainboard.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Typed lookups for one ORM model.

    Usage:
        cards = BaseRepository(CardRecord)
        card = await cards.get_by_id(session, card_id)
    """

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def get_by_id(self, session: AsyncSession, id: Any) -> ModelType | None:
        """Get a record by primary key. Returns None if not found."""
        result = await session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalars().first()

    async def list_by(
        self,
        session: AsyncSession,
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: int | None = None,
    ) -> Sequence[ModelType]:
        """Records matching all ``criteria``, in ``order_by`` order."""
        stmt = select(self.model).where(*criteria).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def update_fields(self, db_obj: ModelType, values: dict[str, Any]) -> ModelType:
        """Set attributes on a loaded record (flushed with its session)."""
        for field, value in values.items():
            setattr(db_obj, field, value)
        return db_obj
