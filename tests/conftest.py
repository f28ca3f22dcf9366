"""Shared fixtures: temp SQLite database, controllable clocks, wired services."""

import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from personabook.booking.catalog import PersonaCatalog
from personabook.booking.lifecycle import BookingService
from personabook.booking.payments import PaymentReconciler
from personabook.channels.base import ChannelAdapter
from personabook.core.config import LimitsConfig
from personabook.db.database import DatabaseManager
from personabook.runtime.scheduling.sweeper import SessionSweeper
from personabook.stores.cache import TTLCache
from personabook.stores.state import UserStateStore

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    """Monotonic clock for cache TTL tests."""

    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
async def db_manager():
    """Provide a temporary database manager."""
    with tempfile.TemporaryDirectory() as tmpdir:
        manager = DatabaseManager(Path(tmpdir) / "test.db", timeout_seconds=5.0)
        await manager.init_db()
        yield manager
        await manager.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def cache(monotonic):
    return TTLCache(ttl_seconds=300, clock=monotonic)


@pytest.fixture
def states(db_manager, cache):
    return UserStateStore(db_manager, cache, LimitsConfig())


@pytest.fixture
def bookings(db_manager, clock):
    return BookingService(db_manager, hold_minutes=5, clock=clock)


@pytest.fixture
async def catalog(db_manager):
    catalog = PersonaCatalog(db_manager)
    await catalog.seed()
    return catalog


@pytest.fixture
def channel():
    channel = AsyncMock(spec=ChannelAdapter)
    channel.send_message.return_value = 100
    channel.send_invoice.return_value = 200
    return channel


@pytest.fixture
def payments(bookings, states, catalog, channel, clock):
    return PaymentReconciler(bookings, states, catalog, channel=channel, clock=clock)


@pytest.fixture
def sweeper(states, bookings, catalog, channel, clock):
    return SessionSweeper(states, bookings, catalog, channel=channel, clock=clock)
