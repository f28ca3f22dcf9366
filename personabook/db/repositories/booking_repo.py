"""Repository for booking operations."""

from datetime import datetime

from sqlalchemy import delete, select, update

from personabook.db.models import BookingRecord
from personabook.db.repositories.base import BaseRepository


class BookingRepository(BaseRepository[BookingRecord]):
    """Repository for booking operations.

    State transitions are written as conditional UPDATE/DELETE statements so
    the row count tells the caller whether this call performed the transition
    or somebody else already had.
    """

    model = BookingRecord

    async def get_by_token(self, invoice_token: str) -> BookingRecord | None:
        """Get booking by its invoice token."""
        stmt = select(BookingRecord).where(BookingRecord.invoice_token == invoice_token)
        return await self._one(stmt)

    async def get_latest_paid(self, user_id: int, persona_id: str) -> BookingRecord | None:
        """Most recent paid, not completed booking for a user and persona."""
        stmt = (
            select(BookingRecord)
            .where(
                BookingRecord.user_id == user_id,
                BookingRecord.persona_id == persona_id,
                BookingRecord.is_paid.is_(True),
                BookingRecord.is_completed.is_(False),
            )
            .order_by(BookingRecord.created_at.desc())
            .limit(1)
        )
        return await self._one(stmt)

    async def list_by_user(self, user_id: int) -> list[BookingRecord]:
        """List a user's bookings, newest first."""
        stmt = (
            select(BookingRecord)
            .where(BookingRecord.user_id == user_id)
            .order_by(BookingRecord.created_at.desc())
        )
        return await self._all(stmt)

    async def get_slot_holder(self, persona_id: str, scheduled_start: datetime) -> BookingRecord | None:
        """Booking currently holding a persona's slot, if any."""
        stmt = select(BookingRecord).where(
            BookingRecord.persona_id == persona_id,
            BookingRecord.scheduled_start == scheduled_start,
            BookingRecord.cancelled_at.is_(None),
        )
        return await self._one(stmt)

    async def purge_expired_slot_holds(
        self, persona_id: str, scheduled_start: datetime, now: datetime
    ) -> int:
        """Drop lapsed unpaid holds on one slot so a fresh booking can take it."""
        stmt = delete(BookingRecord).where(
            BookingRecord.persona_id == persona_id,
            BookingRecord.scheduled_start == scheduled_start,
            BookingRecord.is_paid.is_(False),
            BookingRecord.expires_at <= now,
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def mark_paid(self, booking_id: str, paid_at: datetime) -> bool:
        """Flip an unpaid booking to paid as of ``paid_at``.

        Returns:
            True if this call performed the transition, False if the row was
            already paid or does not exist.
        """
        stmt = (
            update(BookingRecord)
            .where(BookingRecord.id == booking_id, BookingRecord.is_paid.is_(False))
            .values(is_paid=True, expires_at=None, paid_at=paid_at)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def mark_completed(self, booking_id: str) -> bool:
        """Flip a paid booking to completed. False if unpaid or missing."""
        stmt = (
            update(BookingRecord)
            .where(BookingRecord.id == booking_id, BookingRecord.is_paid.is_(True))
            .values(is_completed=True)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def set_payment_message_ref(self, booking_id: str, message_ref: int | None) -> bool:
        stmt = (
            update(BookingRecord)
            .where(BookingRecord.id == booking_id)
            .values(payment_message_ref=message_ref)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def delete_expired(self, now: datetime) -> int:
        """Delete every unpaid booking whose hold has lapsed."""
        stmt = delete(BookingRecord).where(
            BookingRecord.is_paid.is_(False),
            BookingRecord.expires_at.is_not(None),
            BookingRecord.expires_at <= now,
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_pending(self, booking_id: str, now: datetime) -> bool:
        """Delete an unpaid booking that is still inside its hold window."""
        stmt = delete(BookingRecord).where(
            BookingRecord.id == booking_id,
            BookingRecord.is_paid.is_(False),
            BookingRecord.expires_at > now,
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def cancel_scheduled(self, booking_id: str, now: datetime) -> bool:
        """Cancel a paid booking whose scheduled start is still in the future."""
        stmt = (
            update(BookingRecord)
            .where(
                BookingRecord.id == booking_id,
                BookingRecord.is_paid.is_(True),
                BookingRecord.is_completed.is_(False),
                BookingRecord.cancelled_at.is_(None),
                BookingRecord.scheduled_start > now,
            )
            .values(cancelled_at=now, is_completed=True)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1
