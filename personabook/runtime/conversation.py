"""Conversation front end: turns transport events into core operations."""

import logging
from collections.abc import Callable
from datetime import datetime

from personabook.booking.catalog import PersonaCatalog
from personabook.booking.lifecycle import BookingService
from personabook.booking.payments import PaymentReconciler
from personabook.channels.base import ChannelAdapter
from personabook.channels.commands import CommandContext, CommandRouter
from personabook.channels.commands.handlers.personas import (
    BOOK_PREFIX,
    PERSONA_PREFIX,
    persona_options,
    slot_options,
)
from personabook.core.config import LimitsConfig
from personabook.core.errors import DataTooLarge, error_kind, user_message
from personabook.core.timezone import format_for_display, utc_now
from personabook.llm.client import ChatClient
from personabook.model.events import (
    CallbackSelection,
    Message,
    Option,
    PaymentNotification,
    PaymentOutcome,
    PreCheckoutRequest,
)
from personabook.model.user_state import ChatMessage, UserState
from personabook.stores.state import UserStateStore

logger = logging.getLogger(__name__)


def trim_history(history: list[ChatMessage], keep: int) -> list[ChatMessage]:
    """Keep the system prompt plus the last ``keep`` messages."""
    system = [m for m in history[:1] if m.role == "system"]
    rest = history[len(system):]
    return system + (rest[-keep:] if keep > 0 else [])


class ConversationHandler:
    """Dispatches messages, button presses and payment events.

    Args:
        channel: Transport used for replies.
        states: State access layer.
        bookings: Booking lifecycle service.
        catalog: Persona catalog.
        payments: Payment reconciler.
        llm: Chat model client.
        router: Command router with the built-in commands registered.
        limits: Size limits (for history trimming).
        timezone: Display timezone.
        clock: Source of the current time.
    """

    def __init__(
        self,
        channel: ChannelAdapter,
        states: UserStateStore,
        bookings: BookingService,
        catalog: PersonaCatalog,
        payments: PaymentReconciler,
        llm: ChatClient,
        router: CommandRouter,
        limits: LimitsConfig | None = None,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.channel = channel
        self.states = states
        self.bookings = bookings
        self.catalog = catalog
        self.payments = payments
        self.llm = llm
        self.router = router
        self.limits = limits or LimitsConfig()
        self.timezone = timezone
        self._clock = clock

    def attach(self) -> None:
        """Register this handler's callbacks on the channel."""
        self.channel.on_message(self.handle_message)
        self.channel.on_selection(self.handle_selection)
        self.channel.on_pre_checkout(self.handle_pre_checkout)
        self.channel.on_payment(self.handle_payment)

    def _command_context(self) -> CommandContext:
        return CommandContext(
            channel=self.channel,
            states=self.states,
            bookings=self.bookings,
            catalog=self.catalog,
            payments=self.payments,
            command_router=self.router,
            timezone=self.timezone,
            clock=self._clock,
        )

    async def _reply(self, user_id: int, text: str, options: list[Option] | None = None) -> None:
        await self.channel.send_message(user_id, text, options=options or None)

    async def _report(self, user_id: int, exc: Exception, action: str) -> None:
        """Log a failure with its kind and send the user a short apology."""
        logger.error(f"{action} failed for user {user_id} (kind={error_kind(exc)}): {exc}", exc_info=True)
        try:
            await self._reply(user_id, user_message(exc))
        except Exception as send_error:
            logger.warning(f"Could not deliver error message to user {user_id}: {send_error}")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message(self, message: Message) -> None:
        try:
            if message.is_command:
                result = await self.router.route(message, self._command_context())
                if result is None:
                    await self._reply(message.user_id, "Unknown command. Send /help for the list.")
                    return
                if result.handled:
                    if result.response:
                        await self._reply(message.user_id, result.response, result.options)
                    return
            await self._chat_turn(message)
        except Exception as e:
            await self._report(message.user_id, e, "Message handling")

    async def _chat_turn(self, message: Message) -> None:
        user_id = message.user_id
        now = self._clock()
        state = await self.states.get(user_id)
        session = state.current_session

        if session is None or not session.can_chat(now):
            await self._explain_no_session(user_id, state, now)
            return

        persona = self.catalog.resolve(session.persona_id).persona
        if not session.history:
            session.history.append(ChatMessage(role="system", content=persona.prompt))
        session.history.append(ChatMessage(role="user", content=message.content))

        reply = await self.llm.chat(session.history, persona.model, state.temperature)

        session.history.append(ChatMessage(role="assistant", content=reply))
        session.messages_exchanged += 1
        await self._save_turn(user_id, state)
        await self._reply(user_id, reply)

    async def _save_turn(self, user_id: int, state: UserState) -> None:
        """Save after a chat turn, trimming the session history once if it is too large."""
        try:
            await self.states.save(user_id, state)
        except DataTooLarge as e:
            if e.field != "session" or state.current_session is None:
                raise
            keep = self.limits.session_history_keep
            logger.info(f"Session history for user {user_id} too large ({e.size} bytes); keeping last {keep}")
            state.current_session.history = trim_history(state.current_session.history, keep)
            await self.states.save(user_id, state)

    async def _explain_no_session(self, user_id: int, state: UserState, now: datetime) -> None:
        session = state.current_session
        if session is not None and session.ended_at is None and not session.is_active and session.scheduled_start:
            when = format_for_display(session.scheduled_start, self.timezone)
            await self._reply(user_id, f"Your session starts at {when}. See you then!")
            return
        if session is not None and session.is_elapsed(now):
            text = "Your paid time is over. Choose a persona to book a new session:"
        else:
            text = "You have no active session. Choose a persona to book one:"
        await self._reply(user_id, text, persona_options(self.catalog))

    # ------------------------------------------------------------------
    # Button presses
    # ------------------------------------------------------------------

    async def handle_selection(self, selection: CallbackSelection) -> None:
        try:
            prefix, _, payload = selection.data.partition(":")
            if prefix == PERSONA_PREFIX:
                await self._select_persona(selection, payload)
            elif prefix == BOOK_PREFIX:
                await self._book_slot(selection, payload)
            else:
                logger.warning(f"Unknown selection '{selection.data}' from user {selection.user_id}")
        except Exception as e:
            await self._report(selection.user_id, e, "Selection handling")

    async def _select_persona(self, selection: CallbackSelection, persona_id: str) -> None:
        user_id = selection.user_id
        if self.catalog.get(persona_id) is None:
            await self._reply(user_id, "That persona is no longer available.", persona_options(self.catalog))
            return

        state = await self.states.get(user_id)
        state.persona_id = persona_id
        await self.states.save(user_id, state)

        persona = (await self.catalog.resolve_with_price(persona_id)).persona
        slots = await self.catalog.list_time_slots()
        text = (
            f"{persona.name} - {persona.description}\n"
            f"{persona.specialty}\n\n"
            f"Choose a session length:"
        )
        options = slot_options(persona, slots)
        if selection.message_id is not None:
            await self.channel.edit_message(user_id, selection.message_id, text, options)
        else:
            await self._reply(user_id, text, options)

    async def _book_slot(self, selection: CallbackSelection, payload: str) -> None:
        user_id = selection.user_id
        persona_id, _, slot_ref = payload.rpartition(":")
        if self.catalog.get(persona_id) is None or not slot_ref.isdigit():
            await self._reply(user_id, "That option is no longer available.", persona_options(self.catalog))
            return

        slot = await self.catalog.get_time_slot(int(slot_ref))
        if slot is None:
            await self._reply(user_id, "That session length is no longer offered.")
            return

        persona = (await self.catalog.resolve_with_price(persona_id)).persona
        booking = await self.bookings.create(
            user_id=user_id,
            persona_id=persona.id,
            duration_minutes=slot.duration_minutes,
            total_price=slot.calculate_price(persona.price_per_minute),
        )
        await self.payments.send_invoice(booking, persona)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def handle_pre_checkout(self, request: PreCheckoutRequest) -> None:
        decision = await self.payments.pre_checkout(request)
        await self.channel.answer_pre_checkout(request.query_id, decision.ok, decision.reason)

    async def handle_payment(self, payment: PaymentNotification) -> PaymentOutcome:
        return await self.payments.handle_payment(payment)
