"""Payment reconciliation: invoices, pre-checkout and paid confirmations.

Provider confirmations are delivered at least once. Reconciling the same
invoice again never creates a second session; if an earlier attempt marked the
booking paid but failed to save the session, the next delivery rebuilds it.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from personabook.booking.catalog import PersonaCatalog
from personabook.booking.lifecycle import BookingService
from personabook.channels.base import ChannelAdapter
from personabook.core.config import PaymentsConfig
from personabook.core.errors import NotFound, PersonaBookError, error_kind, user_message
from personabook.core.timezone import format_for_display, utc_now
from personabook.model.booking import Booking, MarkPaidResult
from personabook.model.events import (
    PaymentNotification,
    PaymentOutcome,
    PreCheckoutDecision,
    PreCheckoutRequest,
)
from personabook.model.persona import Persona
from personabook.model.user_state import UserSession
from personabook.stores.state import UserStateStore

logger = logging.getLogger(__name__)

NOT_FOUND_TEXT = "Reservation not found. Please contact support."
ALREADY_PAID_TEXT = "This reservation has already been paid."


def materialize_session(booking: Booking, now: datetime) -> UserSession:
    """Build the session a paid booking entitles the user to.

    Immediate bookings run from the moment they were paid (``now`` if the
    booking carries no payment time). Scheduled bookings start inactive and
    are opened by the sweeper once ``scheduled_start`` arrives.
    """
    duration = timedelta(minutes=booking.duration_minutes)
    if booking.scheduled_start is not None:
        return UserSession(
            persona_id=booking.persona_id,
            booking_id=booking.id,
            session_start=booking.scheduled_start,
            paid_until=booking.scheduled_start + duration,
            total_price=booking.total_price,
            is_active=False,
            scheduled_start=booking.scheduled_start,
        )
    start = booking.paid_at or now
    return UserSession(
        persona_id=booking.persona_id,
        booking_id=booking.id,
        session_start=start,
        paid_until=start + duration,
        total_price=booking.total_price,
        is_active=True,
    )


class PaymentReconciler:
    """Turns provider events into booking transitions and user sessions.

    Args:
        bookings: Booking lifecycle service.
        states: State access layer.
        catalog: Persona catalog (for names in notifications).
        channel: Transport used for best-effort notifications.
        config: Invoice settings.
        timezone: Display timezone for scheduled start times.
        clock: Source of the current time.
    """

    def __init__(
        self,
        bookings: BookingService,
        states: UserStateStore,
        catalog: PersonaCatalog,
        channel: ChannelAdapter | None = None,
        config: PaymentsConfig | None = None,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.bookings = bookings
        self.states = states
        self.catalog = catalog
        self.channel = channel
        self.config = config or PaymentsConfig()
        self.timezone = timezone
        self._clock = clock

    def invoice_amount(self, booking: Booking) -> int:
        return round(booking.total_price * self.config.minor_units_per_unit)

    async def send_invoice(self, booking: Booking, persona: Persona) -> int | None:
        """Send the invoice for ``booking`` and remember its message id."""
        if self.channel is None:
            raise RuntimeError("No channel configured for invoices")

        if booking.scheduled_start is not None:
            title = f"Scheduled session with {persona.name}"
            when = format_for_display(booking.scheduled_start, self.timezone)
            description = f"{persona.name}, {booking.duration_minutes} min, starts {when}"
        else:
            title = f"Session with {persona.name}"
            description = f"{persona.name}, {booking.duration_minutes} min"

        message_id = await self.channel.send_invoice(
            user_id=booking.user_id,
            title=title,
            description=description,
            invoice_token=booking.invoice_token,
            amount=self.invoice_amount(booking),
            currency=self.config.currency,
        )
        if message_id is not None:
            await self.bookings.attach_payment_message(booking.id, message_id)
        logger.info(f"Sent invoice for booking {booking.id} to user {booking.user_id}")
        return message_id

    async def pre_checkout(self, request: PreCheckoutRequest) -> PreCheckoutDecision:
        """Approve a charge only for an existing, unpaid, unexpired booking."""
        try:
            booking = await self.bookings.get_by_token(request.invoice_token)
        except PersonaBookError as e:
            logger.error(f"Pre-checkout lookup failed (kind={e.kind}): {e}")
            return PreCheckoutDecision(ok=False, reason="Temporary error, please try again.")

        if booking is None:
            decision = PreCheckoutDecision(ok=False, reason="Reservation not found.")
        elif booking.is_paid:
            decision = PreCheckoutDecision(ok=False, reason="Reservation already paid.")
        elif not booking.is_payable(self._clock()):
            decision = PreCheckoutDecision(ok=False, reason="Reservation expired. Please book again.")
        else:
            decision = PreCheckoutDecision(ok=True)

        logger.info(
            f"Pre-checkout for {request.invoice_token}: "
            f"{'approved' if decision.ok else 'denied (' + str(decision.reason) + ')'}"
        )
        return decision

    async def handle_payment(self, payment: PaymentNotification) -> PaymentOutcome:
        """Reconcile one payment confirmation."""
        try:
            return await self._reconcile(payment)
        except PersonaBookError as e:
            logger.error(
                f"Payment reconciliation failed for {payment.invoice_token} (kind={e.kind}): {e}",
                exc_info=True,
            )
            await self._notify(payment.user_id, user_message(e))
            return PaymentOutcome.FAILED

    async def _reconcile(self, payment: PaymentNotification) -> PaymentOutcome:
        booking = await self.bookings.get_by_token(payment.invoice_token)
        if booking is None:
            logger.warning(f"No booking for invoice token {payment.invoice_token}")
            await self._notify(payment.user_id, NOT_FOUND_TEXT)
            return PaymentOutcome.NOT_FOUND

        now = self._clock()
        if booking.is_paid:
            if await self._needs_repair(booking, now):
                logger.warning(f"Booking {booking.id} paid without a session; rebuilding it")
                return await self._activate(booking, now)
            logger.info(f"Duplicate payment confirmation for booking {booking.id}")
            await self._notify(booking.user_id, ALREADY_PAID_TEXT)
            return PaymentOutcome.ALREADY_PROCESSED

        try:
            result = await self.bookings.mark_paid(booking.id, paid_at=now)
        except NotFound:
            # Deleted between lookup and update (expired and swept)
            logger.warning(f"Booking {booking.id} vanished before it could be marked paid")
            await self._notify(payment.user_id, NOT_FOUND_TEXT)
            return PaymentOutcome.NOT_FOUND

        if result is MarkPaidResult.ALREADY_PAID:
            logger.info(f"Booking {booking.id} was paid by a concurrent confirmation")
            return PaymentOutcome.ALREADY_PROCESSED

        booking.is_paid = True
        booking.expires_at = None
        booking.paid_at = now
        return await self._activate(booking, now)

    async def _needs_repair(self, booking: Booking, now: datetime) -> bool:
        """Paid and still live, but the user's state does not carry its session."""
        if booking.is_completed or booking.cancelled_at is not None:
            return False
        window_start = booking.scheduled_start or booking.paid_at
        if window_start is not None:
            if now >= window_start + timedelta(minutes=booking.duration_minutes):
                return False
        state = await self.states.load(booking.user_id)
        session = state.current_session
        if session is None:
            return True
        # a live session from another booking wins over a stale redelivery
        return session.booking_id != booking.id and session.ended_at is not None

    async def _activate(self, booking: Booking, now: datetime) -> PaymentOutcome:
        state = await self.states.load(booking.user_id)
        session = materialize_session(booking, now)
        replaced = state.current_session
        state.persona_id = booking.persona_id
        state.current_session = session
        await self.states.save(booking.user_id, state)

        if (
            replaced is not None
            and replaced.ended_at is None
            and replaced.booking_id not in (None, booking.id)
        ):
            logger.info(f"Session from booking {replaced.booking_id} replaced by booking {booking.id}")
            await self.bookings.mark_completed(replaced.booking_id)

        outcome = PaymentOutcome.ACTIVATED if session.is_active else PaymentOutcome.SCHEDULED
        logger.info(
            f"Payment reconciled for booking {booking.id}: {outcome.value}, "
            f"paid_until={session.paid_until.isoformat()}"
        )
        await self._after_payment(booking, session)
        return outcome

    async def _after_payment(self, booking: Booking, session: UserSession) -> None:
        if booking.payment_message_ref is not None:
            await self._delete(booking.user_id, booking.payment_message_ref)

        persona = self.catalog.resolve(booking.persona_id).persona
        if session.is_active:
            text = (
                f"Payment received! Your session with {persona.name} has started.\n"
                f"Available time: {booking.duration_minutes} min.\n\n{persona.greeting}"
            )
        else:
            when = format_for_display(session.session_start, self.timezone)
            text = (
                f"Payment received! Your session with {persona.name} is scheduled for {when} "
                f"({booking.duration_minutes} min). It will start automatically."
            )
        await self._notify(booking.user_id, text)

    async def _notify(self, user_id: int, text: str) -> None:
        if self.channel is None:
            return
        try:
            await self.channel.send_message(user_id, text)
        except Exception as e:
            logger.warning(f"Notification to user {user_id} failed (kind={error_kind(e)}): {e}")

    async def _delete(self, user_id: int, message_id: int) -> None:
        if self.channel is None:
            return
        try:
            await self.channel.delete_message(user_id, message_id)
        except Exception as e:
            logger.warning(f"Could not delete invoice message {message_id} (kind={error_kind(e)}): {e}")
