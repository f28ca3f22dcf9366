"""Telegram channel adapter using python-telegram-bot."""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from telegram import BotCommand, InlineKeyboardButton, InlineKeyboardMarkup, LabeledPrice, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    ContextTypes,
    MessageHandler,
    PreCheckoutQueryHandler,
    filters,
)

from personabook.channels.base import ChannelAdapter
from personabook.model.events import (
    CallbackSelection,
    Message,
    Option,
    PaymentNotification,
    PreCheckoutRequest,
)

logger = logging.getLogger(__name__)


def build_keyboard(options: list[Option] | None) -> InlineKeyboardMarkup | None:
    """One button per row, in the order given."""
    if not options:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(option.label, callback_data=option.data)] for option in options]
    )


class TelegramChannel(ChannelAdapter):
    """Telegram channel adapter.

    Handles:
    - Bot initialization and lifecycle
    - Update conversion (text, commands, button presses, payments)
    - User allowlisting
    - Invoices through the Bot Payments API
    """

    name = "telegram"

    # Telegram maximum message length
    MAX_MESSAGE_LENGTH = 4096

    def __init__(
        self,
        token: str | None = None,
        allowed_users: list[int] | None = None,
        allow_all: bool = True,
        provider_token: str = "",
        concurrent_updates: int = 64,
    ):
        """Initialize the Telegram channel.

        Args:
            token: Bot token (falls back to TELEGRAM_BOT_TOKEN env var).
            allowed_users: List of allowed user IDs.
            allow_all: If True, every user may book (public bot).
            provider_token: Payment provider token; empty for Telegram Stars.
            concurrent_updates: Updates processed in parallel. One user's slow
                model call must not hold up everyone else's messages.
        """
        super().__init__()
        resolved_token = token or os.environ.get("TELEGRAM_BOT_TOKEN")
        if not resolved_token:
            raise ValueError("Telegram bot token required (pass token or set TELEGRAM_BOT_TOKEN)")
        self.token: str = resolved_token

        self.allowed_users = set(allowed_users or [])
        self.allow_all = allow_all
        self.provider_token = provider_token
        self.concurrent_updates = concurrent_updates
        self._app: Application | None = None  # type: ignore[type-arg]

    def _build_application(self) -> Application:  # type: ignore[type-arg]
        app = Application.builder().token(self.token).concurrent_updates(self.concurrent_updates).build()

        app.add_handler(PreCheckoutQueryHandler(self._handle_pre_checkout))
        app.add_handler(MessageHandler(filters.SUCCESSFUL_PAYMENT, self._handle_payment))
        app.add_handler(CallbackQueryHandler(self._handle_callback))
        app.add_handler(MessageHandler(filters.COMMAND, self._handle_message))
        app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self._handle_message))
        return app

    async def start(self) -> None:
        """Start the Telegram bot."""
        self._app = self._build_application()

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling()  # type: ignore[union-attr]

        logger.info("Telegram channel started")

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        if self._app:
            await self._app.updater.stop()  # type: ignore[union-attr]
            await self._app.stop()
            await self._app.shutdown()
            logger.info("Telegram channel stopped")

    def _bot(self) -> Any:
        if not self._app:
            raise RuntimeError("Telegram channel not started")
        return self._app.bot

    async def register_commands(self, commands: list[Any]) -> None:
        """Publish command hints shown in the Telegram client menu."""
        await self._bot().set_my_commands(
            [BotCommand(c.name, c.description) for c in commands if not c.hidden]
        )

    async def send_message(
        self, user_id: int, text: str, options: list[Option] | None = None
    ) -> int | None:
        """Send text, splitting at Telegram's length limit.

        Options are attached to the last chunk.
        """
        bot = self._bot()
        chunks = self._split_message(text)
        sent = None
        for i, chunk in enumerate(chunks):
            markup = build_keyboard(options) if i == len(chunks) - 1 else None
            sent = await bot.send_message(chat_id=user_id, text=chunk, reply_markup=markup)
        return sent.message_id if sent else None

    async def edit_message(
        self, user_id: int, message_id: int, text: str, options: list[Option] | None = None
    ) -> None:
        await self._bot().edit_message_text(
            chat_id=user_id,
            message_id=message_id,
            text=text[: self.MAX_MESSAGE_LENGTH],
            reply_markup=build_keyboard(options),
        )

    async def delete_message(self, user_id: int, message_id: int) -> None:
        await self._bot().delete_message(chat_id=user_id, message_id=message_id)

    async def send_invoice(
        self,
        user_id: int,
        title: str,
        description: str,
        invoice_token: str,
        amount: int,
        currency: str,
    ) -> int | None:
        sent = await self._bot().send_invoice(
            chat_id=user_id,
            title=title,
            description=description,
            payload=invoice_token,
            provider_token=self.provider_token,
            currency=currency,
            prices=[LabeledPrice(label=title, amount=amount)],
        )
        return sent.message_id if sent else None

    async def answer_pre_checkout(self, query_id: str, ok: bool, reason: str | None = None) -> None:
        await self._bot().answer_pre_checkout_query(
            pre_checkout_query_id=query_id,
            ok=ok,
            error_message=None if ok else reason,
        )

    def _split_message(self, text: str) -> list[str]:
        """Split text into chunks that fit Telegram's message limit.

        Tries to break at paragraph boundaries (double newline), falls back
        to single newlines, then hard-splits as a last resort.
        """
        if len(text) <= self.MAX_MESSAGE_LENGTH:
            return [text]

        chunks: list[str] = []
        remaining = text

        while remaining:
            if len(remaining) <= self.MAX_MESSAGE_LENGTH:
                chunks.append(remaining)
                break

            split_at = remaining.rfind("\n\n", 0, self.MAX_MESSAGE_LENGTH)
            if split_at == -1:
                split_at = remaining.rfind("\n", 0, self.MAX_MESSAGE_LENGTH)
            if split_at == -1:
                split_at = self.MAX_MESSAGE_LENGTH

            chunks.append(remaining[:split_at])
            remaining = remaining[split_at:].lstrip("\n")

        return chunks

    def _is_allowed(self, user_id: int | None) -> bool:
        """Allow everyone in public mode, otherwise only allowlisted users."""
        if user_id is None:
            return False
        if self.allow_all:
            return True
        return user_id in self.allowed_users

    def _to_message(self, update: Update) -> Message | None:
        """Convert Telegram update to the inbound Message model."""
        if not update.message or not update.effective_user:
            return None

        return Message(
            id=str(update.message.message_id),
            user_id=update.effective_user.id,
            content=update.message.text or "",
            timestamp=update.message.date or datetime.now(UTC),
            metadata={
                "username": update.effective_user.username,
                "first_name": update.effective_user.first_name,
            },
        )

    async def _handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle incoming text messages and commands."""
        user_id = update.effective_user.id if update.effective_user else None
        if not self._is_allowed(user_id):
            if update.message:
                await update.message.reply_text("Access denied.")
            logger.warning(f"Blocked user {user_id}")
            return

        message = self._to_message(update)
        if message and self._message_callback:
            await self._message_callback(message)

    async def _handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle inline keyboard button presses."""
        query = update.callback_query
        if not query or not query.data:
            return

        await query.answer()  # Acknowledge the button press

        if not self._is_allowed(query.from_user.id):
            return

        selection = CallbackSelection(
            user_id=query.from_user.id,
            data=query.data,
            message_id=query.message.message_id if query.message else None,
        )
        if self._selection_callback:
            await self._selection_callback(selection)

    async def _handle_pre_checkout(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.pre_checkout_query
        if not query:
            return

        request = PreCheckoutRequest(
            query_id=query.id,
            user_id=query.from_user.id,
            invoice_token=query.invoice_payload,
        )
        if self._pre_checkout_callback:
            await self._pre_checkout_callback(request)
        else:
            await self.answer_pre_checkout(query.id, ok=False, reason="Payments are unavailable.")

    async def _handle_payment(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or not update.message.successful_payment or not update.effective_user:
            return

        payment = update.message.successful_payment
        notification = PaymentNotification(
            user_id=update.effective_user.id,
            invoice_token=payment.invoice_payload,
            amount=payment.total_amount,
            currency=payment.currency,
            provider_charge_id=payment.provider_payment_charge_id,
        )
        logger.info(
            f"Successful payment from user {notification.user_id}: "
            f"{notification.amount} {notification.currency}"
        )
        if self._payment_callback:
            await self._payment_callback(notification)
