"""Inbound event and outcome models exchanged with the transport."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


@dataclass
class Message:
    """Unified inbound text message.

    Adapts platform-specific messages to a common structure.
    """

    id: str
    user_id: int
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_command(self) -> bool:
        """Check if message is a command (starts with /)."""
        return self.content.strip().startswith("/")

    def parse_command(self) -> tuple[str, str]:
        """Parse command and arguments from message.

        Returns:
            Tuple of (command_name, arguments_string).
        """
        if not self.is_command:
            return ("", self.content)

        parts = self.content.strip().split(maxsplit=1)
        command = parts[0][1:]
        args = parts[1] if len(parts) > 1 else ""
        return (command, args)


@dataclass
class CallbackSelection:
    """A button press on a previously sent option list."""

    user_id: int
    data: str
    message_id: int | None = None


@dataclass
class PaymentNotification:
    """Provider confirmation that an invoice was paid."""

    user_id: int
    invoice_token: str
    amount: int
    currency: str
    provider_charge_id: str | None = None


@dataclass
class PreCheckoutRequest:
    """Provider asking whether an invoice may still be charged."""

    query_id: str
    user_id: int
    invoice_token: str


@dataclass
class PreCheckoutDecision:
    ok: bool
    reason: str | None = None


class PaymentOutcome(Enum):
    """Result of reconciling one payment notification."""

    ACTIVATED = "activated"
    SCHEDULED = "scheduled"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class Option:
    """One selectable choice attached to an outbound message."""

    label: str
    data: str
