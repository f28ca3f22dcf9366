"""Tests for the periodic booking and session sweep."""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock

from personabook.core.config import SweeperConfig
from personabook.core.errors import StoreError
from personabook.model.events import PaymentNotification
from personabook.model.user_state import UserSession, UserState
from personabook.runtime.scheduling.sweeper import SessionSweeper

from conftest import START


async def pay(payments, booking):
    await payments.handle_payment(
        PaymentNotification(
            user_id=booking.user_id, invoice_token=booking.invoice_token, amount=1, currency="XTR"
        )
    )


class TestRunOnce:
    async def test_expires_unpaid_bookings(self, sweeper, bookings, clock):
        booking = await bookings.create(1, "anna", 30, 3.0)
        clock.advance(minutes=6)

        report = await sweeper.run_once()

        assert report.expired == 1
        assert await bookings.get_by_id(booking.id) is None

    async def test_opens_scheduled_session(self, sweeper, payments, bookings, states, channel, clock):
        booking = await bookings.create(1, "anna", 30, 3.0, scheduled_start=START + timedelta(minutes=10))
        await pay(payments, booking)

        assert (await sweeper.run_once()).started == 0
        clock.advance(minutes=10)
        report = await sweeper.run_once()

        assert report.started == 1
        session = (await states.get(1)).current_session
        assert session.is_active is True
        assert session.session_start == START + timedelta(minutes=10)
        assert "has started" in channel.send_message.call_args.args[1]

    async def test_closes_elapsed_session(self, sweeper, payments, bookings, states, channel, clock):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await pay(payments, booking)
        clock.advance(minutes=31)

        report = await sweeper.run_once()

        assert report.ended == 1
        session = (await states.get(1)).current_session
        assert session.is_active is False
        assert session.ended_at == START + timedelta(minutes=31)
        assert (await bookings.get_by_id(booking.id)).is_completed is True
        assert "has ended" in channel.send_message.call_args.args[1]

    async def test_session_inside_window_untouched(self, sweeper, payments, bookings, states, clock):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await pay(payments, booking)
        clock.advance(minutes=29)

        report = await sweeper.run_once()

        assert report.ended == 0
        assert (await states.get(1)).current_session.is_active is True

    async def test_missed_window_is_closed(self, sweeper, payments, bookings, states, clock):
        booking = await bookings.create(1, "anna", 15, 1.5, scheduled_start=START + timedelta(minutes=10))
        await pay(payments, booking)
        clock.advance(minutes=40)

        report = await sweeper.run_once()

        assert report.started == 0
        assert report.ended == 1
        assert (await states.get(1)).current_session.ended_at is not None
        assert (await bookings.get_by_id(booking.id)).is_completed is True

    async def test_missing_funding_booking_is_logged(self, sweeper, states, clock, caplog):
        session = UserSession(
            persona_id="anna",
            booking_id=None,
            session_start=START,
            paid_until=START + timedelta(minutes=5),
            total_price=0.5,
            is_active=True,
        )
        await states.save(1, UserState(current_session=session))
        clock.advance(minutes=6)

        with caplog.at_level(logging.WARNING):
            report = await sweeper.run_once()

        assert report.ended == 1
        assert "No funding booking found" in caplog.text
        assert (await states.get(1)).current_session.is_active is False

    async def test_expire_failure_does_not_stop_scan(self, sweeper, payments, bookings, clock, monkeypatch):
        booking = await bookings.create(1, "anna", 30, 3.0)
        await pay(payments, booking)
        clock.advance(minutes=31)
        monkeypatch.setattr(bookings, "expire", AsyncMock(side_effect=StoreError("locked")))

        report = await sweeper.run_once()

        assert report.expired == 0
        assert report.ended == 1

    async def test_one_user_failing_does_not_stop_others(
        self, sweeper, payments, bookings, states, clock, monkeypatch
    ):
        for user_id in (1, 2):
            await pay(payments, await bookings.create(user_id, "anna", 30, 3.0))
        clock.advance(minutes=31)
        real_save = states.save

        async def flaky_save(user_id, state):
            if user_id == 1:
                raise StoreError("locked")
            await real_save(user_id, state)

        monkeypatch.setattr(states, "save", flaky_save)

        report = await sweeper.run_once()

        assert report.ended == 1

    async def test_notification_failure_is_swallowed(self, sweeper, payments, bookings, channel, clock):
        await pay(payments, await bookings.create(1, "anna", 30, 3.0))
        clock.advance(minutes=31)
        channel.send_message.side_effect = ConnectionError("down")

        assert (await sweeper.run_once()).ended == 1


class TestCacheCleanup:
    async def test_evicts_stale_entries(self, sweeper, states, monotonic):
        await states.save(1, UserState(persona_id="anna"))
        monotonic.advance(301)

        assert await sweeper.cleanup_cache() == 1
        assert len(states.cache) == 0


class TestScheduler:
    async def test_start_registers_jobs(self, states, bookings, catalog):
        sweeper = SessionSweeper(states, bookings, catalog, config=SweeperConfig(interval_seconds=30))
        await sweeper.start()
        try:
            job_ids = {job.id for job in sweeper._scheduler.get_jobs()}
            assert job_ids == {"session_sweep", "cache_cleanup"}
        finally:
            await sweeper.stop()

    async def test_disabled_sweep_keeps_cache_cleanup(self, states, bookings, catalog):
        sweeper = SessionSweeper(states, bookings, catalog, config=SweeperConfig(enabled=False))
        await sweeper.start()
        try:
            assert [job.id for job in sweeper._scheduler.get_jobs()] == ["cache_cleanup"]
        finally:
            await sweeper.stop()
