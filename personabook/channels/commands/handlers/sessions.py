"""Sessions command handler."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult
from personabook.core.timezone import format_for_display

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


class SessionsCommand(CommandHandler):
    """Show the current session and the user's bookings."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="sessions",
            description="Show your session and bookings",
            group=CommandGroup.SESSION,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        now = context.clock()
        tz = context.timezone
        lines: list[str] = []

        state = await context.states.get(message.user_id)
        session = state.current_session
        if session and session.can_chat(now):
            remaining = int((session.paid_until - now).total_seconds() // 60)
            name = context.catalog.resolve(session.persona_id).persona.name
            lines.append(f"Active session with {name}: {remaining} min left.\n")
        elif session and session.scheduled_start and session.ended_at is None and not session.is_active:
            name = context.catalog.resolve(session.persona_id).persona.name
            when = format_for_display(session.scheduled_start, tz)
            lines.append(f"Upcoming session with {name} at {when}.\n")

        bookings = await context.bookings.list_for_user(message.user_id)
        if not bookings:
            lines.append("You have no bookings yet. Send /personas to book a session.")
            return CommandResult(response="\n".join(lines))

        lines.append("Your bookings:")
        for booking in bookings:
            name = context.catalog.resolve(booking.persona_id).persona.name
            when = (
                f", starts {format_for_display(booking.scheduled_start, tz)}"
                if booking.scheduled_start
                else ""
            )
            lines.append(
                f"{booking.id[:8]} - {name}, {booking.duration_minutes} min, "
                f"{booking.total_price:g}{when} [{booking.status(now).value}]"
            )
        return CommandResult(response="\n".join(lines))
