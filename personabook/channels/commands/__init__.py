"""Chat command framework."""

from personabook.channels.commands.base import (
    CommandContext,
    CommandDefinition,
    CommandGroup,
    CommandHandler,
    CommandResult,
)
from personabook.channels.commands.router import CommandRouter

__all__ = [
    "CommandContext",
    "CommandDefinition",
    "CommandGroup",
    "CommandHandler",
    "CommandResult",
    "CommandRouter",
]
