"""Tests for invoice sending, pre-checkout and payment reconciliation."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from personabook.booking.payments import ALREADY_PAID_TEXT, NOT_FOUND_TEXT, materialize_session
from personabook.core.errors import StoreError
from personabook.db.repositories import UserStateRepository
from personabook.model.events import PaymentNotification, PaymentOutcome, PreCheckoutRequest
from personabook.model.user_state import UserSession, UserState

from conftest import START

SLOT = START + timedelta(hours=1)


def payment_for(booking) -> PaymentNotification:
    return PaymentNotification(
        user_id=booking.user_id,
        invoice_token=booking.invoice_token,
        amount=300,
        currency="XTR",
    )


def sent_texts(channel) -> list[str]:
    return [c.args[1] for c in channel.send_message.call_args_list]


class TestMaterializeSession:
    async def test_immediate(self, bookings):
        booking = await bookings.create(1, "anna", 30, 3.0)

        session = materialize_session(booking, START)

        assert session.is_active is True
        assert session.session_start == START
        assert session.paid_until == START + timedelta(minutes=30)
        assert session.booking_id == booking.id

    async def test_scheduled(self, bookings):
        booking = await bookings.create(1, "anna", 30, 3.0, scheduled_start=SLOT)

        session = materialize_session(booking, START)

        assert session.is_active is False
        assert session.scheduled_start == SLOT
        assert session.paid_until == SLOT + timedelta(minutes=30)


class TestSendInvoice:
    async def test_amount_and_message_ref(self, payments, bookings, catalog, channel):
        booking = await bookings.create(1, "anna", 30, 3.0)

        message_id = await payments.send_invoice(booking, catalog.get("anna"))

        assert message_id == 200
        kwargs = channel.send_invoice.call_args.kwargs
        assert kwargs["amount"] == 300
        assert kwargs["currency"] == "XTR"
        assert kwargs["invoice_token"] == booking.invoice_token
        assert (await bookings.get_by_id(booking.id)).payment_message_ref == 200

    async def test_scheduled_invoice_mentions_start(self, payments, bookings, catalog, channel):
        booking = await bookings.create(1, "anna", 30, 3.0, scheduled_start=SLOT)

        await payments.send_invoice(booking, catalog.get("anna"))

        assert "2026-03-01 13:00" in channel.send_invoice.call_args.kwargs["description"]


class TestPreCheckout:
    async def test_approves_pending(self, payments, bookings):
        booking = await bookings.create(1, "anna", 30, 3.0)

        decision = await payments.pre_checkout(PreCheckoutRequest("q1", 1, booking.invoice_token))

        assert decision.ok is True

    async def test_rejects_unknown(self, payments):
        decision = await payments.pre_checkout(PreCheckoutRequest("q1", 1, "missing"))
        assert decision.ok is False
        assert decision.reason == "Reservation not found."

    async def test_rejects_paid(self, payments, bookings):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await bookings.mark_paid(booking.id)

        decision = await payments.pre_checkout(PreCheckoutRequest("q1", 1, booking.invoice_token))

        assert decision.reason == "Reservation already paid."

    async def test_rejects_expired(self, payments, bookings, clock):
        booking = await bookings.create(1, "anna", 30, 3.0)
        clock.advance(minutes=5)

        decision = await payments.pre_checkout(PreCheckoutRequest("q1", 1, booking.invoice_token))

        assert decision.ok is False
        assert "expired" in decision.reason

    async def test_store_failure(self, payments, monkeypatch):
        monkeypatch.setattr(payments.bookings, "get_by_token", AsyncMock(side_effect=StoreError("down")))

        decision = await payments.pre_checkout(PreCheckoutRequest("q1", 1, "t"))

        assert decision.ok is False
        assert decision.reason == "Temporary error, please try again."


class TestHandlePayment:
    async def test_immediate_booking_activates(self, payments, bookings, states, channel):
        booking = await bookings.create(1, "anna", 30, 3.0)

        outcome = await payments.handle_payment(payment_for(booking))

        assert outcome is PaymentOutcome.ACTIVATED
        state = await states.get(1)
        assert state.persona_id == "anna"
        session = state.current_session
        assert session.is_active is True
        assert session.booking_id == booking.id
        assert session.paid_until == START + timedelta(minutes=30)
        assert (await bookings.get_by_id(booking.id)).is_paid is True
        assert "Payment received" in sent_texts(channel)[-1]

    async def test_scheduled_booking_waits(self, payments, bookings, states):
        booking = await bookings.create(1, "anna", 30, 3.0, scheduled_start=SLOT)

        outcome = await payments.handle_payment(payment_for(booking))

        assert outcome is PaymentOutcome.SCHEDULED
        session = (await states.get(1)).current_session
        assert session.is_active is False
        assert session.scheduled_start == SLOT

    async def test_redelivery_is_ignored(self, payments, bookings, states, channel, clock):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await payments.handle_payment(payment_for(booking))
        before = await states.get(1)
        clock.advance(minutes=2)

        outcome = await payments.handle_payment(payment_for(booking))

        assert outcome is PaymentOutcome.ALREADY_PROCESSED
        assert await states.get(1) == before
        assert sent_texts(channel)[-1] == ALREADY_PAID_TEXT

    async def test_invoice_message_is_deleted(self, payments, bookings, catalog, channel):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await payments.send_invoice(booking, catalog.get("anna"))

        await payments.handle_payment(payment_for(booking))

        channel.delete_message.assert_awaited_once_with(1, 200)

    async def test_unknown_token(self, payments, channel):
        outcome = await payments.handle_payment(
            PaymentNotification(user_id=1, invoice_token="missing", amount=1, currency="XTR")
        )

        assert outcome is PaymentOutcome.NOT_FOUND
        assert sent_texts(channel) == [NOT_FOUND_TEXT]

    async def test_failed_session_save_is_repaired_on_redelivery(self, payments, bookings, states, monkeypatch):
        booking = await bookings.create(1, "anna", 30, 3.0)
        real_save = states.save
        monkeypatch.setattr(states, "save", AsyncMock(side_effect=StoreError("down")))

        assert await payments.handle_payment(payment_for(booking)) is PaymentOutcome.FAILED
        assert (await bookings.get_by_id(booking.id)).is_paid is True
        assert (await states.get(1)).current_session is None

        monkeypatch.setattr(states, "save", real_save)
        assert await payments.handle_payment(payment_for(booking)) is PaymentOutcome.ACTIVATED
        assert (await states.get(1)).current_session.booking_id == booking.id

    async def test_failure_sends_apology_without_details(self, payments, bookings, states, channel, monkeypatch):
        booking = await bookings.create(1, "anna", 30, 3.0)
        monkeypatch.setattr(states, "save", AsyncMock(side_effect=StoreError("disk I/O error at /var/db")))

        await payments.handle_payment(payment_for(booking))

        assert "/var/db" not in sent_texts(channel)[-1]
        assert sent_texts(channel)[-1].startswith("Sorry")

    async def test_replaced_session_booking_completed(self, payments, bookings, states):
        first = await bookings.create(1, "anna", 15, 1.5)
        await payments.handle_payment(payment_for(first))
        second = await bookings.create(1, "maxim", 30, 2.7)

        await payments.handle_payment(payment_for(second))

        assert (await bookings.get_by_id(first.id)).is_completed is True
        state = await states.get(1)
        assert state.current_session.booking_id == second.id
        assert state.persona_id == "maxim"

    async def test_redelivery_does_not_replace_a_newer_session(self, payments, bookings, states):
        first = await bookings.create(1, "anna", 15, 1.5)
        await payments.handle_payment(payment_for(first))
        second = await bookings.create(1, "maxim", 30, 2.7)
        await payments.handle_payment(payment_for(second))

        outcome = await payments.handle_payment(payment_for(first))

        assert outcome is PaymentOutcome.ALREADY_PROCESSED
        assert (await states.get(1)).current_session.booking_id == second.id

    async def test_unreadable_state_on_redelivery_changes_nothing(
        self, payments, bookings, states, clock, monotonic, monkeypatch
    ):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await payments.handle_payment(payment_for(booking))
        state = await states.get(1)
        state.temperature = 0.9
        await states.save(1, state)
        clock.advance(minutes=20)
        monotonic.advance(301)
        monkeypatch.setattr(
            UserStateRepository, "get_by_id", AsyncMock(side_effect=StoreError("read timed out"))
        )

        outcome = await payments.handle_payment(payment_for(booking))

        assert outcome is PaymentOutcome.FAILED
        monkeypatch.undo()
        state = await states.get(1)
        assert state.temperature == 0.9
        assert state.current_session.paid_until == START + timedelta(minutes=30)

    async def test_unreadable_state_on_first_delivery_keeps_preferences(
        self, payments, bookings, states, monotonic, monkeypatch
    ):
        await states.save(1, UserState(preferences={"temperature": 0.9}))
        monotonic.advance(301)
        booking = await bookings.create(1, "anna", 30, 3.0)
        monkeypatch.setattr(
            UserStateRepository, "get_by_id", AsyncMock(side_effect=StoreError("read timed out"))
        )

        assert await payments.handle_payment(payment_for(booking)) is PaymentOutcome.FAILED

        monkeypatch.undo()
        state = await states.get(1)
        assert state.temperature == 0.9
        assert state.current_session is None
        assert (await bookings.get_by_id(booking.id)).is_paid is True

    async def test_repair_keeps_the_paid_window(self, payments, bookings, states, clock, monkeypatch):
        booking = await bookings.create(1, "anna", 30, 3.0)
        real_save = states.save
        monkeypatch.setattr(states, "save", AsyncMock(side_effect=StoreError("down")))
        await payments.handle_payment(payment_for(booking))
        monkeypatch.setattr(states, "save", real_save)
        clock.advance(minutes=10)

        assert await payments.handle_payment(payment_for(booking)) is PaymentOutcome.ACTIVATED

        session = (await states.get(1)).current_session
        assert session.session_start == START
        assert session.paid_until == START + timedelta(minutes=30)

    async def test_no_repair_once_the_paid_window_is_over(
        self, payments, bookings, states, clock, monkeypatch
    ):
        booking = await bookings.create(1, "anna", 30, 3.0)
        real_save = states.save
        monkeypatch.setattr(states, "save", AsyncMock(side_effect=StoreError("down")))
        await payments.handle_payment(payment_for(booking))
        monkeypatch.setattr(states, "save", real_save)
        clock.advance(minutes=31)

        assert await payments.handle_payment(payment_for(booking)) is PaymentOutcome.ALREADY_PROCESSED
        assert (await states.get(1)).current_session is None

    async def test_notification_failure_does_not_fail_payment(self, payments, bookings, channel):
        channel.send_message.side_effect = ConnectionError("telegram down")
        booking = await bookings.create(1, "anna", 30, 3.0)

        assert await payments.handle_payment(payment_for(booking)) is PaymentOutcome.ACTIVATED


class TestNeedsRepair:
    @pytest.fixture
    async def paid(self, bookings):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await bookings.mark_paid(booking.id)
        return await bookings.get_by_id(booking.id)

    async def test_missing_session(self, payments, paid):
        assert await payments._needs_repair(paid, START) is True

    async def test_completed_booking(self, payments, bookings, paid):
        await bookings.mark_completed(paid.id)
        completed = await bookings.get_by_id(paid.id)
        assert await payments._needs_repair(completed, START) is False

    async def test_session_present(self, payments, states, paid):
        session = materialize_session(paid, START)
        await states.save(1, UserState(current_session=session))
        assert await payments._needs_repair(paid, START) is False

    async def test_other_session_ended(self, payments, states, paid):
        ended = UserSession(
            persona_id="maxim",
            booking_id="older",
            session_start=START - timedelta(hours=1),
            paid_until=START - timedelta(minutes=30),
            total_price=1.0,
            ended_at=START - timedelta(minutes=30),
        )
        await states.save(1, UserState(current_session=ended))
        assert await payments._needs_repair(paid, START) is True
