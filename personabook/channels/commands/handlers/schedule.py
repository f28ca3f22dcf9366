"""Schedule command handler."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult
from personabook.core.errors import SlotTaken, user_message
from personabook.core.timezone import format_for_display, parse_local

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message
    from personabook.model.persona import Persona, TimeSlot

logger = logging.getLogger(__name__)

USAGE = "Usage: /schedule <persona> <minutes> <YYYY-MM-DD HH:MM>"


class ScheduleCommand(CommandHandler):
    """Book a persona for a specific future time."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="schedule",
            description="Book a session for a later time",
            args_description="<persona> <minutes> <YYYY-MM-DD HH:MM>",
            group=CommandGroup.BOOKING,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        parts = args.split(maxsplit=2)
        if len(parts) != 3:
            return CommandResult(response=USAGE)
        persona_id, minutes_str, when_str = parts

        if context.catalog.get(persona_id.lower()) is None:
            known = ", ".join(p.id for p in context.catalog.all())
            return CommandResult(response=f"Unknown persona '{persona_id}'. Choose one of: {known}")

        try:
            minutes = int(minutes_str)
        except ValueError:
            return CommandResult(response=USAGE)

        slots = await context.catalog.list_time_slots()
        slot = next((s for s in slots if s.duration_minutes == minutes), None)
        if slot is None:
            offered = ", ".join(str(s.duration_minutes) for s in slots)
            return CommandResult(response=f"Available durations: {offered} minutes")

        try:
            start = parse_local(when_str, context.timezone)
        except ValueError:
            return CommandResult(response=USAGE)
        if start <= context.clock():
            return CommandResult(response="Please choose a time in the future.")

        persona = (await context.catalog.resolve_with_price(persona_id.lower())).persona
        return await self._book(message.user_id, persona, slot, start, context)

    async def _book(
        self,
        user_id: int,
        persona: "Persona",
        slot: "TimeSlot",
        start: datetime,
        context: "CommandContext",
    ) -> CommandResult:
        try:
            booking = await context.bookings.create(
                user_id=user_id,
                persona_id=persona.id,
                duration_minutes=slot.duration_minutes,
                total_price=slot.calculate_price(persona.price_per_minute),
                scheduled_start=start,
            )
        except SlotTaken as e:
            logger.info(f"Slot taken for {persona.id} at {start.isoformat()}")
            return CommandResult(response=user_message(e))

        await context.payments.send_invoice(booking, persona)
        hold = int(context.bookings.hold.total_seconds() // 60)
        when = format_for_display(start, context.timezone)
        return CommandResult(
            response=f"{persona.name} is reserved for you at {when}. Please pay within {hold} minutes."
        )
