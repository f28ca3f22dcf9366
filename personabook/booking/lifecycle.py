"""Booking lifecycle: Pending -> Paid -> Completed, or Pending -> Expired.

Every transition is a conditional statement against the bookings table, so
running the same transition twice (or from two handlers at once) is harmless.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from personabook.core.errors import CannotCancel, NotFound, SlotTaken, StoreError
from personabook.core.timezone import ensure_utc, utc_now
from personabook.db.database import DatabaseManager
from personabook.db.models import BookingRecord
from personabook.db.repositories import BookingRepository
from personabook.model.booking import Booking, BookingStatus, MarkPaidResult

logger = logging.getLogger(__name__)

SLOT_INDEX_MARKERS = ("uq_bookings_persona_slot", "bookings.scheduled_start")


def to_domain(record: BookingRecord) -> Booking:
    """Convert a bookings row into the domain dataclass."""
    return Booking(
        id=record.id,
        user_id=record.user_id,
        persona_id=record.persona_id,
        duration_minutes=record.duration_minutes,
        total_price=record.total_price,
        invoice_token=record.invoice_token,
        created_at=ensure_utc(record.created_at),
        expires_at=ensure_utc(record.expires_at),
        is_paid=record.is_paid,
        is_completed=record.is_completed,
        payment_message_ref=record.payment_message_ref,
        scheduled_start=ensure_utc(record.scheduled_start),
        cancelled_at=ensure_utc(record.cancelled_at),
        paid_at=ensure_utc(record.paid_at),
    )


def new_invoice_token(user_id: int) -> str:
    return f"{user_id}_{uuid.uuid4().hex}"


class BookingService:
    """Creates bookings and drives their state transitions.

    Args:
        db: Database manager.
        hold_minutes: How long an unpaid booking holds its slot.
        clock: Source of the current time (aware UTC).
    """

    def __init__(
        self,
        db: DatabaseManager,
        hold_minutes: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.hold = timedelta(minutes=hold_minutes)
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def create(
        self,
        user_id: int,
        persona_id: str,
        duration_minutes: int,
        total_price: float,
        scheduled_start: datetime | None = None,
        invoice_token: str | None = None,
    ) -> Booking:
        """Create a pending booking.

        Raises:
            SlotTaken: Another live booking holds ``(persona_id, scheduled_start)``.
            StoreError: The store write failed.
        """
        now = self.now()
        scheduled_start = ensure_utc(scheduled_start)
        record = BookingRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            persona_id=persona_id,
            duration_minutes=duration_minutes,
            total_price=total_price,
            invoice_token=invoice_token or new_invoice_token(user_id),
            is_paid=False,
            is_completed=False,
            scheduled_start=scheduled_start,
            created_at=now,
            updated_at=now,
            expires_at=now + self.hold,
        )

        async def _create(s):
            repo = BookingRepository(s)
            if scheduled_start is not None:
                # First statement is a write: concurrent creators queue on the
                # store's write lock and the loser sees the winner's row.
                await repo.purge_expired_slot_holds(persona_id, scheduled_start, now)
                holder = await repo.get_slot_holder(persona_id, scheduled_start)
                if holder is not None:
                    raise SlotTaken(f"{persona_id} is already booked at {scheduled_start.isoformat()}")
            try:
                await repo.create(record)
            except IntegrityError as e:
                if any(marker in str(e.orig) for marker in SLOT_INDEX_MARKERS):
                    raise SlotTaken(f"{persona_id} is already booked at {scheduled_start}") from e
                raise StoreError(f"booking insert rejected: {e.orig}") from e
            return to_domain(record)

        booking = await self.db.run(_create)
        logger.info(
            f"Created booking {booking.id} for user {user_id}: {persona_id}, "
            f"{duration_minutes} min, {total_price}"
            + (f", starts {scheduled_start.isoformat()}" if scheduled_start else "")
        )
        return booking

    async def get_by_id(self, booking_id: str) -> Booking | None:
        record = await self.db.run(lambda s: BookingRepository(s).get_by_id(booking_id))
        return to_domain(record) if record else None

    async def get_by_token(self, invoice_token: str) -> Booking | None:
        record = await self.db.run(lambda s: BookingRepository(s).get_by_token(invoice_token))
        return to_domain(record) if record else None

    async def latest_paid(self, user_id: int, persona_id: str) -> Booking | None:
        """Most recent paid, not yet completed booking for a user and persona."""
        record = await self.db.run(
            lambda s: BookingRepository(s).get_latest_paid(user_id, persona_id)
        )
        return to_domain(record) if record else None

    async def list_for_user(self, user_id: int) -> list[Booking]:
        records = await self.db.run(lambda s: BookingRepository(s).list_by_user(user_id))
        return [to_domain(r) for r in records]

    async def mark_paid(self, booking_id: str, paid_at: datetime | None = None) -> MarkPaidResult:
        """Idempotently flip a booking to paid.

        ``paid_at`` defaults to the service clock.

        Raises:
            NotFound: No booking with this id.
        """

        async def _mark(s):
            repo = BookingRepository(s)
            if await repo.mark_paid(booking_id, paid_at or self.now()):
                return MarkPaidResult.PAID
            if await repo.get_by_id(booking_id) is None:
                raise NotFound(f"booking {booking_id} not found")
            return MarkPaidResult.ALREADY_PAID

        result = await self.db.run(_mark)
        if result is MarkPaidResult.ALREADY_PAID:
            logger.info(f"Booking {booking_id} was already paid")
        else:
            logger.info(f"Booking {booking_id} marked as paid")
        return result

    async def mark_completed(self, booking_id: str) -> bool:
        """Mark a paid booking completed. Returns False if it is not paid."""
        done = await self.db.run(lambda s: BookingRepository(s).mark_completed(booking_id))
        if not done:
            logger.warning(f"Booking {booking_id} not completed: missing or unpaid")
        return done

    async def attach_payment_message(self, booking_id: str, message_ref: int | None) -> None:
        await self.db.run(
            lambda s: BookingRepository(s).set_payment_message_ref(booking_id, message_ref)
        )

    async def expire(self, now: datetime | None = None) -> int:
        """Delete every unpaid booking whose hold has lapsed."""
        now = now or self.now()
        return await self.db.run(lambda s: BookingRepository(s).delete_expired(now))

    async def cancel(self, booking_id: str, user_id: int | None = None) -> Booking:
        """Cancel a pending booking, or a paid one that has not started yet.

        Returns:
            The booking as it was before cancellation.

        Raises:
            NotFound: Unknown booking, or it belongs to another user.
            CannotCancel: The booking is past the point of cancellation.
        """
        now = self.now()

        async def _cancel(s):
            repo = BookingRepository(s)
            record = await repo.get_by_id(booking_id)
            if record is None or (user_id is not None and record.user_id != user_id):
                raise NotFound(f"booking {booking_id} not found")
            booking = to_domain(record)
            status = booking.status(now)

            if status is BookingStatus.PENDING and await repo.delete_pending(booking_id, now):
                return booking
            if (
                status is BookingStatus.PAID
                and booking.scheduled_start is not None
                and not booking.has_started(now)
                and await repo.cancel_scheduled(booking_id, now)
            ):
                return booking
            raise CannotCancel(f"booking {booking_id} is {status.value}")

        booking = await self.db.run(_cancel)
        if booking.is_paid:
            logger.info(
                f"Cancelled paid booking {booking.id} for user {booking.user_id}; "
                f"refund of {booking.total_price} is handled by the payment provider"
            )
        else:
            logger.info(f"Cancelled pending booking {booking.id} for user {booking.user_id}")
        return booking
