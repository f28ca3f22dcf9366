"""Shared plumbing for repositories bound to one mapped table."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from personabook.db.models import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Runs queries for ``model`` inside the caller's session.

    Repositories never commit; ``DatabaseManager.run`` owns the transaction.
    """

    model: ClassVar[type[Base]]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: Any) -> T | None:
        return await self.session.get(self.model, id)  # type: ignore[return-value]

    async def create(self, entity: T) -> T:
        """Add ``entity`` and flush so constraint violations surface here."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def _one(self, stmt: Select[Any]) -> T | None:
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def _all(self, stmt: Select[Any]) -> list[T]:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
