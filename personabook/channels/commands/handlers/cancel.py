"""Cancel command handler."""

import logging
from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult
from personabook.core.errors import CannotCancel, NotFound, user_message

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message

logger = logging.getLogger(__name__)


class CancelCommand(CommandHandler):
    """Cancel a pending booking or a paid one that has not started."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="cancel",
            description="Cancel a booking",
            args_description="<booking_id>",
            group=CommandGroup.BOOKING,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        ref = args.strip()
        if not ref:
            return CommandResult(response="Usage: /cancel <booking_id> (see /sessions for ids)")

        # /sessions shows short ids; accept any unique prefix of the user's bookings
        matches = [
            b for b in await context.bookings.list_for_user(message.user_id) if b.id.startswith(ref)
        ]
        if len(matches) > 1:
            return CommandResult(response="That id matches several bookings. Please use more characters.")
        booking_id = matches[0].id if matches else ref

        try:
            booking = await context.bookings.cancel(booking_id, user_id=message.user_id)
        except (NotFound, CannotCancel) as e:
            return CommandResult(response=user_message(e))

        state = await context.states.get(message.user_id)
        if state.current_session and state.current_session.booking_id == booking.id:
            state.current_session = None
            await context.states.save(message.user_id, state)

        if booking.is_paid:
            return CommandResult(
                response="Your scheduled session was cancelled. The refund is processed by the payment provider."
            )
        return CommandResult(response="Your reservation was cancelled.")
