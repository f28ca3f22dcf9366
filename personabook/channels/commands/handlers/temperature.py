"""Temperature preference command handler."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandGroup, CommandHandler, CommandResult

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


class TemperatureCommand(CommandHandler):
    """Show or set the reply temperature used for the chat model."""

    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(
            name="temperature",
            description="Show or set reply creativity (0 to 1)",
            args_description="[value]",
            group=CommandGroup.PREFERENCES,
        )

    async def handle(
        self,
        message: "Message",
        args: str,
        context: "CommandContext",
    ) -> CommandResult:
        state = await context.states.get(message.user_id)
        args = args.strip()

        if not args:
            current = state.temperature
            shown = f"{current:g}" if current is not None else "default"
            return CommandResult(response=f"Temperature: {shown}")

        try:
            value = float(args.replace(",", "."))
        except ValueError:
            return CommandResult(response="Usage: /temperature <number between 0 and 1>")
        if not 0.0 <= value <= 1.0:
            return CommandResult(response="Temperature must be between 0 and 1.")

        state.temperature = value
        await context.states.save(message.user_id, state)
        return CommandResult(response=f"Temperature set to {value:g}")
