"""Persona listing command and the option builders shared with callbacks."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult
from personabook.model.events import Option

if TYPE_CHECKING:
    from personabook.booking.catalog import PersonaCatalog
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message
    from personabook.model.persona import Persona, TimeSlot

PERSONA_PREFIX = "persona"
BOOK_PREFIX = "book"


def persona_options(catalog: "PersonaCatalog") -> list[Option]:
    """One option per persona, carrying ``persona:<id>``."""
    return [
        Option(label=f"{p.name} - {p.description}", data=f"{PERSONA_PREFIX}:{p.id}")
        for p in catalog.all()
    ]


def slot_options(persona: "Persona", slots: list["TimeSlot"]) -> list[Option]:
    """One option per time slot, carrying ``book:<persona>:<slot>``."""
    return [
        Option(
            label=f"{slot.duration_minutes} min - {slot.calculate_price(persona.price_per_minute):g}",
            data=f"{BOOK_PREFIX}:{persona.id}:{slot.id}",
        )
        for slot in slots
    ]


class PersonasCommand(CommandHandler):
    """List bookable personas."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="personas",
            description="Choose a persona to book",
            group=CommandGroup.BOOKING,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        lines = ["Available personas:\n"]
        for persona in context.catalog.all():
            priced = (await context.catalog.resolve_with_price(persona.id)).persona
            lines.append(
                f"{persona.name} ({persona.id}) - {persona.specialty}. "
                f"{priced.price_per_minute:g} per minute"
            )
        return CommandResult(response="\n".join(lines), options=persona_options(context.catalog))
