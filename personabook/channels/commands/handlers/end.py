"""End command handler."""

from typing import TYPE_CHECKING

from personabook.booking.sessions import close_session
from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


class EndCommand(CommandHandler):
    """End the active session before its paid time runs out."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="end",
            description="End your current session early",
            group=CommandGroup.SESSION,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        state = await context.states.get(message.user_id)
        session = state.current_session
        if session is None or not session.is_active:
            return CommandResult(response="You have no active session.")

        await close_session(context.states, context.bookings, message.user_id, state, context.clock())
        return CommandResult(response="Session ended. Thank you! Send /personas to book another one.")
