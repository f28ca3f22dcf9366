"""/help: commands grouped so booking comes first."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import CommandDefinition, CommandHandler, CommandResult

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


def usage(definition: CommandDefinition) -> str:
    if definition.args_description:
        return f"/{definition.name} {definition.args_description}"
    return f"/{definition.name}"


class HelpCommand(CommandHandler):
    @property
    def definition(self) -> CommandDefinition:
        return CommandDefinition(name="help", description="Show available commands")

    async def handle(self, message: "Message", args: str, context: "CommandContext") -> CommandResult:
        sections = context.command_router.grouped() if context.command_router else []
        if not sections:
            return CommandResult(response="No commands available.")

        blocks = []
        for group, definitions in sections:
            lines = [f"{group.value}:"]
            lines.extend(f"{usage(d)} - {d.description}" for d in definitions)
            blocks.append("\n".join(lines))
        blocks.append("Send any other text to talk to your persona during a paid session.")
        return CommandResult(response="\n\n".join(blocks))
