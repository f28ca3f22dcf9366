"""Base channel adapter interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any

from personabook.model.events import (
    CallbackSelection,
    Message,
    Option,
    PaymentNotification,
    PreCheckoutRequest,
)

MessageCallback = Callable[[Message], Coroutine[Any, Any, None]]
SelectionCallback = Callable[[CallbackSelection], Coroutine[Any, Any, None]]
PreCheckoutCallback = Callable[[PreCheckoutRequest], Coroutine[Any, Any, None]]
PaymentCallback = Callable[[PaymentNotification], Coroutine[Any, Any, None]]


class ChannelAdapter(ABC):
    """Abstract base class for chat transports.

    Channel adapters handle:
    - Protocol adaptation (platform updates to the inbound event models)
    - Access control (allowlists)
    - Outbound requests: text, option lists, edits, deletes, invoices

    Users are addressed by their numeric platform id.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._message_callback: MessageCallback | None = None
        self._selection_callback: SelectionCallback | None = None
        self._pre_checkout_callback: PreCheckoutCallback | None = None
        self._payment_callback: PaymentCallback | None = None

    @abstractmethod
    async def start(self) -> None:
        """Start the channel adapter (connect, authenticate, etc.)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel adapter gracefully."""
        ...

    @abstractmethod
    async def send_message(
        self, user_id: int, text: str, options: list[Option] | None = None
    ) -> int | None:
        """Send text, optionally with selectable options.

        Returns:
            Platform message id of the sent message, if known.
        """
        ...

    @abstractmethod
    async def edit_message(
        self, user_id: int, message_id: int, text: str, options: list[Option] | None = None
    ) -> None:
        ...

    @abstractmethod
    async def delete_message(self, user_id: int, message_id: int) -> None:
        ...

    @abstractmethod
    async def send_invoice(
        self,
        user_id: int,
        title: str,
        description: str,
        invoice_token: str,
        amount: int,
        currency: str,
    ) -> int | None:
        """Send a payable invoice.

        Args:
            invoice_token: Opaque token echoed back in payment events.
            amount: Price in the currency's smallest unit.

        Returns:
            Platform message id of the invoice, if known.
        """
        ...

    @abstractmethod
    async def answer_pre_checkout(self, query_id: str, ok: bool, reason: str | None = None) -> None:
        ...

    def on_message(self, callback: MessageCallback) -> None:
        """Register a callback for incoming text messages and commands."""
        self._message_callback = callback

    def on_selection(self, callback: SelectionCallback) -> None:
        """Register a callback for option button presses."""
        self._selection_callback = callback

    def on_pre_checkout(self, callback: PreCheckoutCallback) -> None:
        self._pre_checkout_callback = callback

    def on_payment(self, callback: PaymentCallback) -> None:
        self._payment_callback = callback

    async def register_commands(self, commands: list[Any]) -> None:
        """Register available commands with the channel platform.

        Override in implementations that support native command registration
        (e.g., Telegram BotFather hints).

        Default implementation is a no-op.
        """
        pass
