"""Built-in chat command handlers."""

from personabook.channels.commands.base import CommandHandler
from personabook.channels.commands.handlers.cancel import CancelCommand
from personabook.channels.commands.handlers.clear import ClearCommand
from personabook.channels.commands.handlers.end import EndCommand
from personabook.channels.commands.handlers.help import HelpCommand
from personabook.channels.commands.handlers.personas import PersonasCommand
from personabook.channels.commands.handlers.schedule import ScheduleCommand
from personabook.channels.commands.handlers.sessions import SessionsCommand
from personabook.channels.commands.handlers.start import StartCommand
from personabook.channels.commands.handlers.temperature import TemperatureCommand


def get_builtin_commands() -> list[CommandHandler]:
    """Return all built-in command handlers for registration.

    Returns:
        List of command handler instances.
    """
    return [
        StartCommand(),
        HelpCommand(),
        PersonasCommand(),
        ScheduleCommand(),
        SessionsCommand(),
        CancelCommand(),
        EndCommand(),
        TemperatureCommand(),
        ClearCommand(),
    ]


__all__ = [
    "CancelCommand",
    "ClearCommand",
    "EndCommand",
    "get_builtin_commands",
    "HelpCommand",
    "PersonasCommand",
    "ScheduleCommand",
    "SessionsCommand",
    "StartCommand",
    "TemperatureCommand",
]
