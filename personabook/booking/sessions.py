"""Opening and closing paid sessions on a user's state."""

import logging
from datetime import datetime

from personabook.booking.lifecycle import BookingService
from personabook.model.user_state import UserState
from personabook.stores.state import UserStateStore

logger = logging.getLogger(__name__)


async def open_session(states: UserStateStore, user_id: int, state: UserState, now: datetime) -> None:
    """Activate a scheduled session whose start time has arrived."""
    session = state.current_session
    if session is None:
        return
    session.is_active = True
    session.session_start = session.scheduled_start or now
    await states.save(user_id, state)
    logger.info(f"Scheduled session started for user {user_id} (booking {session.booking_id})")


async def close_session(
    states: UserStateStore,
    bookings: BookingService,
    user_id: int,
    state: UserState,
    now: datetime,
) -> str | None:
    """Deactivate the user's session, persist it, then complete its booking.

    Returns:
        Id of the booking marked completed, or None if no funding booking
        could be found.
    """
    session = state.current_session
    if session is None:
        return None

    session.is_active = False
    session.ended_at = now
    await states.save(user_id, state)

    booking_id = session.booking_id
    if booking_id is None:
        latest = await bookings.latest_paid(user_id, session.persona_id)
        booking_id = latest.id if latest else None

    if booking_id is None:
        logger.warning(f"No funding booking found for ended session of user {user_id}")
        return None

    await bookings.mark_completed(booking_id)
    logger.info(f"Session ended for user {user_id}; booking {booking_id} completed")
    return booking_id
