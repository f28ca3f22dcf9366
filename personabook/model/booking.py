"""Domain models for reservations."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BookingStatus(Enum):
    """Lifecycle position of a booking."""

    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class MarkPaidResult(Enum):
    """Outcome of an idempotent paid transition."""

    PAID = "paid"
    ALREADY_PAID = "already_paid"


@dataclass
class Booking:
    """One reservation attempt.

    Invariants: ``invoice_token`` is unique across all bookings; a paid booking
    has no ``expires_at``; an unpaid booking whose ``expires_at`` has passed is
    invalid and gets purged by the sweeper.
    """

    id: str
    user_id: int
    persona_id: str
    duration_minutes: int
    total_price: float
    invoice_token: str
    created_at: datetime
    expires_at: datetime | None
    is_paid: bool = False
    is_completed: bool = False
    payment_message_ref: int | None = None
    scheduled_start: datetime | None = None
    cancelled_at: datetime | None = None
    paid_at: datetime | None = None

    def status(self, now: datetime) -> BookingStatus:
        if self.cancelled_at is not None:
            return BookingStatus.CANCELLED
        if self.is_completed:
            return BookingStatus.COMPLETED
        if self.is_paid:
            return BookingStatus.PAID
        if self.expires_at is not None and self.expires_at <= now:
            return BookingStatus.EXPIRED
        return BookingStatus.PENDING

    def is_payable(self, now: datetime) -> bool:
        """Unpaid, not cancelled and still inside its hold window."""
        return self.status(now) is BookingStatus.PENDING

    def has_started(self, now: datetime) -> bool:
        return self.scheduled_start is not None and self.scheduled_start <= now
