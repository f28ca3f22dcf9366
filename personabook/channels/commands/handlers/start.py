"""Start command handler."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandHandler, CommandResult
from personabook.channels.commands.handlers.personas import persona_options

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


class StartCommand(CommandHandler):
    """Greet the user and offer the persona list."""

    @property
    def definition(self) -> CommandDefinition:
        """Command metadata."""
        return CommandDefinition(
            name="start",
            description="Start the bot",
            hidden=True,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        name = message.metadata.get("first_name") or "there"
        return CommandResult(
            response=(
                f"Hello, {name}! Book a paid chat session with one of our personas.\n"
                "Pick a persona below, or send /help for all commands."
            ),
            options=persona_options(context.catalog),
        )
