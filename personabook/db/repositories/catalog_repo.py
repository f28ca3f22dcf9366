"""Repository for catalog support tables (persona prices and time slots)."""

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from personabook.db.models import PersonaPrice, TimeSlotRecord


class CatalogRepository:
    """Read access to live prices and time slots, plus first-run seeding."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_price(self, persona_id: str) -> float | None:
        """Get the live per-minute price for a persona."""
        price = await self.session.get(PersonaPrice, persona_id)
        return price.price_per_minute if price else None

    async def seed_prices(self, prices: dict[str, float]) -> None:
        """Insert default prices for personas that have none yet."""
        for persona_id, price in prices.items():
            stmt = (
                sqlite_insert(PersonaPrice)
                .values(persona_id=persona_id, price_per_minute=price)
                .on_conflict_do_nothing(index_elements=[PersonaPrice.persona_id])
            )
            await self.session.execute(stmt)

    async def list_active_slots(self) -> list[TimeSlotRecord]:
        """List active time slots in display order."""
        stmt = (
            select(TimeSlotRecord)
            .where(TimeSlotRecord.is_active.is_(True))
            .order_by(TimeSlotRecord.sort_order, TimeSlotRecord.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def seed_slots(self, slots: list[TimeSlotRecord]) -> int:
        """Insert default slots when the table is empty.

        Returns:
            Number of slots inserted.
        """
        count = await self.session.scalar(select(func.count()).select_from(TimeSlotRecord))
        if count:
            return 0
        self.session.add_all(slots)
        await self.session.flush()
        return len(slots)
