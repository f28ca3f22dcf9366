"""Dispatch of slash commands to their handlers."""

from typing import TYPE_CHECKING

from personabook.channels.commands.base import (
    CommandDefinition,
    CommandGroup,
    CommandHandler,
    CommandResult,
)

if TYPE_CHECKING:
    from personabook.channels.commands.base import CommandContext
    from personabook.model.events import Message


def command_name(raw: str) -> str:
    """Normalize ``/Sessions@PersonaBookBot`` style names to ``sessions``."""
    return raw.split("@", 1)[0].lower()


class CommandRouter:
    """Name to handler table for the bot's commands.

    Registration order is kept; it is the order commands appear within a
    group in /help and in the Telegram client menu.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}

    def register(self, handler: CommandHandler) -> None:
        name = handler.definition.name
        if name in self._handlers:
            raise ValueError(f"Command /{name} registered twice")
        self._handlers[name] = handler

    def get_handler(self, name: str) -> CommandHandler | None:
        return self._handlers.get(command_name(name))

    def list_commands(self, include_hidden: bool = False) -> list[CommandDefinition]:
        return [
            h.definition
            for h in self._handlers.values()
            if include_hidden or not h.definition.hidden
        ]

    def grouped(self) -> list[tuple[CommandGroup, list[CommandDefinition]]]:
        """Visible commands by group, groups in display order, empty groups dropped."""
        visible = self.list_commands()
        sections = []
        for group in CommandGroup:
            members = [d for d in visible if d.group is group]
            if members:
                sections.append((group, members))
        return sections

    async def route(self, message: "Message", context: "CommandContext") -> CommandResult | None:
        """Run the handler for a command message.

        Returns:
            The handler's result, or None for plain text and unknown commands.
        """
        if not message.is_command:
            return None

        name, args = message.parse_command()
        handler = self.get_handler(name)
        if handler is None:
            return None
        return await handler.handle(message, args, context)
