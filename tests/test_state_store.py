"""Tests for the read-through / write-through user state store."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from personabook.core.config import LimitsConfig
from personabook.core.errors import DataTooLarge, SerializationError, StoreError
from personabook.db.repositories import UserStateRepository
from personabook.model.user_state import ChatMessage, UserSession, UserState
from personabook.stores.state import UserStateStore, serialized_size

from conftest import START


def make_session(**overrides) -> UserSession:
    values = dict(
        persona_id="anna",
        booking_id="b1",
        session_start=START,
        paid_until=START + timedelta(minutes=30),
        total_price=3.0,
        is_active=True,
    )
    values.update(overrides)
    return UserSession(**values)


async def write_raw(db, user_id: int, **fields):
    """Write a row straight to the store, bypassing the cache."""
    row = {"persona_id": "", "session": None, "history": [], "preferences": {}}
    row.update(fields)
    await db.run(lambda s: UserStateRepository(s).upsert(user_id=user_id, **row))


class TestSerializedSize:
    def test_compact_utf8(self):
        assert serialized_size({"a": 1}) == len('{"a":1}')
        assert serialized_size(["é"]) == len('["é"]'.encode())

    def test_none(self):
        assert serialized_size(None) == 4


class TestGet:
    """Read path: cache first, store second, default on failure."""

    async def test_unknown_user_gets_default(self, states):
        state = await states.get(7)
        assert state == UserState()

    async def test_round_trip(self, states):
        state = UserState(
            persona_id="anna",
            current_session=make_session(history=[ChatMessage("user", "hi")]),
            preferences={"temperature": 0.5},
        )
        await states.save(7, state)
        await states.invalidate(7)

        loaded = await states.get(7)

        assert loaded == state
        assert loaded.current_session.paid_until == START + timedelta(minutes=30)
        assert loaded.temperature == 0.5

    async def test_cache_hit_does_not_touch_store(self, states, monkeypatch):
        await states.save(7, UserState(persona_id="anna"))
        monkeypatch.setattr(states.db, "run", AsyncMock(side_effect=AssertionError("store hit")))

        assert (await states.get(7)).persona_id == "anna"

    async def test_cached_copy_is_isolated(self, states):
        await states.save(7, UserState(persona_id="anna"))
        first = await states.get(7)
        first.persona_id = "maxim"

        assert (await states.get(7)).persona_id == "anna"

    async def test_stale_entry_reloads_from_store(self, states, db_manager, monotonic):
        await states.save(7, UserState(persona_id="anna"))
        await write_raw(db_manager, 7, persona_id="sofia")

        assert (await states.get(7)).persona_id == "anna"

        monotonic.advance(301)
        assert (await states.get(7)).persona_id == "sofia"

    async def test_store_failure_returns_default(self, states, monkeypatch, caplog):
        monkeypatch.setattr(states.db, "run", AsyncMock(side_effect=StoreError("down")))

        state = await states.get(7)

        assert state == UserState()
        assert "kind=store" in caplog.text
        assert len(states.cache) == 0

    async def test_malformed_row_returns_default(self, states, db_manager):
        await write_raw(db_manager, 7, persona_id="anna", session={"bogus": True})

        state = await states.get(7)

        assert state.current_session is None
        assert state.persona_id == ""

    async def test_save_during_slow_read_is_not_overwritten(self, states, monotonic, monkeypatch):
        await states.save(7, UserState(persona_id="old"))
        monotonic.advance(301)

        read_done = asyncio.Event()
        release = asyncio.Event()
        real_get_by_id = UserStateRepository.get_by_id

        async def slow_get_by_id(repo, user_id):
            record = await real_get_by_id(repo, user_id)
            read_done.set()
            await release.wait()
            return record

        monkeypatch.setattr(UserStateRepository, "get_by_id", slow_get_by_id)

        reader = asyncio.create_task(states.get(7))
        await read_done.wait()
        await states.save(7, UserState(persona_id="new"))
        release.set()
        await reader

        assert (await states.get(7)).persona_id == "new"


class TestLoad:
    """Strict read: same cache path as ``get`` but failures propagate."""

    async def test_store_failure_raises(self, states, monkeypatch):
        monkeypatch.setattr(states.db, "run", AsyncMock(side_effect=StoreError("down")))

        with pytest.raises(StoreError):
            await states.load(7)
        assert len(states.cache) == 0

    async def test_malformed_row_raises(self, states, db_manager):
        await write_raw(db_manager, 7, persona_id="anna", session={"bogus": True})

        with pytest.raises(SerializationError):
            await states.load(7)

    async def test_missing_row_is_default(self, states):
        assert await states.load(7) == UserState()

    async def test_cache_hit(self, states, monkeypatch):
        await states.save(7, UserState(persona_id="anna"))
        monkeypatch.setattr(states.db, "run", AsyncMock(side_effect=StoreError("down")))

        assert (await states.load(7)).persona_id == "anna"


class TestSave:
    """Write path: validate, store, then cache."""

    async def test_oversized_history_rejected(self, db_manager, cache):
        store = UserStateStore(db_manager, cache, LimitsConfig(history_max_bytes=100))
        state = UserState(conversation_history=[ChatMessage("user", "x" * 200)])

        with pytest.raises(DataTooLarge) as exc_info:
            await store.save(7, state)

        assert exc_info.value.field == "history"
        assert exc_info.value.limit == 100
        assert await db_manager.run(lambda s: UserStateRepository(s).get_by_id(7)) is None

    async def test_oversized_preferences_rejected(self, db_manager, cache):
        store = UserStateStore(db_manager, cache, LimitsConfig(preferences_max_bytes=10))

        with pytest.raises(DataTooLarge) as exc_info:
            await store.save(7, UserState(preferences={"note": "far too long"}))

        assert exc_info.value.field == "preferences"

    async def test_oversized_session_rejected(self, db_manager, cache):
        store = UserStateStore(db_manager, cache, LimitsConfig(session_max_bytes=300))
        session = make_session(history=[ChatMessage("assistant", "y" * 400)])

        with pytest.raises(DataTooLarge) as exc_info:
            await store.save(7, UserState(current_session=session))

        assert exc_info.value.field == "session"

    async def test_failed_write_leaves_cache_unchanged(self, states, monkeypatch):
        await states.save(7, UserState(persona_id="anna"))
        monkeypatch.setattr(states.db, "run", AsyncMock(side_effect=StoreError("down")))

        with pytest.raises(StoreError):
            await states.save(7, UserState(persona_id="maxim"))

        assert (await states.get(7)).persona_id == "anna"

    async def test_clearing_session_persists_null(self, states, db_manager):
        await states.save(7, UserState(current_session=make_session()))
        await states.save(7, UserState())

        record = await db_manager.run(lambda s: UserStateRepository(s).get_by_id(7))
        assert record.session is None


class TestListAll:
    async def test_skips_undecodable_rows(self, states, db_manager):
        await states.save(1, UserState(persona_id="anna", current_session=make_session()))
        await write_raw(db_manager, 2, session={"persona_id": "anna"})

        all_states = await states.list_all()

        assert list(all_states) == [1]
        assert all_states[1].current_session.booking_id == "b1"
