"""Base abstractions for the command system."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from personabook.core.timezone import utc_now
from personabook.model.events import Option

if TYPE_CHECKING:
    from personabook.booking.catalog import PersonaCatalog
    from personabook.booking.lifecycle import BookingService
    from personabook.booking.payments import PaymentReconciler
    from personabook.channels.base import ChannelAdapter
    from personabook.model.events import Message
    from personabook.stores.state import UserStateStore


class CommandGroup(Enum):
    """Sections of the /help listing, in display order."""

    BOOKING = "Booking"
    SESSION = "Your session"
    PREFERENCES = "Preferences"
    GENERAL = "General"


@dataclass
class CommandDefinition:
    """What a command is called and how /help and the client menu show it."""

    name: str
    description: str
    hidden: bool = False  # start is reachable but not advertised
    args_description: str | None = None
    group: CommandGroup = CommandGroup.GENERAL


@dataclass
class CommandContext:
    """Runtime context passed to command handlers."""

    channel: "ChannelAdapter"
    states: "UserStateStore"
    bookings: "BookingService"
    catalog: "PersonaCatalog"
    payments: "PaymentReconciler"
    command_router: Any = None  # CommandRouter, avoid circular import
    timezone: str = "UTC"  # IANA timezone for displaying and parsing times
    clock: Callable[[], datetime] = utc_now


@dataclass
class CommandResult:
    """Result from a command handler."""

    response: str | None = None  # Text to send back to user
    options: list[Option] = field(default_factory=list)  # Buttons attached to the response
    handled: bool = True  # If False, treat the message as conversation text


class CommandHandler(ABC):
    """Base class for command implementations."""

    @property
    @abstractmethod
    def definition(self) -> CommandDefinition:
        """Command metadata."""
        ...

    @abstractmethod
    async def handle(
        self,
        message: "Message",
        args: str,
        context: CommandContext,
    ) -> CommandResult:
        """Execute the command."""
        ...
