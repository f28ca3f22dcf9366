"""State access layer: read-through / write-through over the cache and store."""

import copy
import json
import logging
from typing import Any

from personabook.core.config import LimitsConfig
from personabook.core.errors import DataTooLarge, PersonaBookError, SerializationError
from personabook.db.database import DatabaseManager
from personabook.db.models import UserStateRecord
from personabook.db.repositories import UserStateRepository
from personabook.model.user_state import ChatMessage, UserSession, UserState
from personabook.stores.cache import TTLCache

logger = logging.getLogger(__name__)


def serialized_size(payload: Any) -> int:
    """Size in bytes of ``payload`` encoded as compact UTF-8 JSON."""
    try:
        encoded = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"cannot encode payload: {e}") from e
    return len(encoded.encode("utf-8"))


def decode_record(record: UserStateRecord) -> UserState:
    """Build a UserState from a stored row.

    Raises:
        SerializationError: If any JSON field is malformed.
    """
    try:
        return UserState(
            persona_id=record.persona_id or "",
            current_session=UserSession.from_dict(record.session) if record.session else None,
            conversation_history=[ChatMessage.from_dict(m) for m in record.history or []],
            preferences=dict(record.preferences or {}),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SerializationError(f"malformed state for user {record.user_id}: {e}") from e


class UserStateStore:
    """Façade every component uses to read and write per-user state.

    ``get`` never fails: on any store problem it logs and hands back a default
    state. ``load`` is the same read but raises instead. ``save`` validates field sizes first, writes the store, and only
    then refreshes the cache, so a failed write leaves the cache untouched.
    """

    def __init__(
        self,
        db: DatabaseManager,
        cache: TTLCache[UserState],
        limits: LimitsConfig | None = None,
    ):
        self.db = db
        self.cache = cache
        self.limits = limits or LimitsConfig()

    async def load(self, user_id: int) -> UserState:
        """Read the state for ``user_id`` and propagate store failures.

        Callers that are about to rewrite state they cannot reconstruct
        (payment handling) use this instead of ``get``.

        Raises:
            StoreError: The store read failed or timed out.
            SerializationError: The stored row could not be decoded.
        """
        cached = await self.cache.get(user_id)
        if cached is not None:
            return copy.deepcopy(cached)

        since = self.cache.generation
        record = await self.db.run(lambda s: UserStateRepository(s).get_by_id(user_id))
        state = decode_record(record) if record is not None else UserState()
        # a save that landed during the read wins over what we read
        current = await self.cache.fill(user_id, copy.deepcopy(state), since)
        return copy.deepcopy(current)

    async def get(self, user_id: int) -> UserState:
        try:
            return await self.load(user_id)
        except PersonaBookError as e:
            logger.warning(
                f"State read failed for user {user_id} (kind={e.kind}); using default state: {e}"
            )
            return UserState()

    def _validate(self, state: UserState) -> tuple[list[dict[str, str]], dict[str, Any], dict[str, Any] | None]:
        history = state.history_payload()
        preferences = dict(state.preferences)
        session = state.session_payload()

        checks = [
            ("history", history, self.limits.history_max_bytes),
            ("preferences", preferences, self.limits.preferences_max_bytes),
            ("session", session, self.limits.session_max_bytes),
        ]
        for field_name, payload, limit in checks:
            size = serialized_size(payload)
            if size > limit:
                raise DataTooLarge(field_name, size, limit)
        return history, preferences, session

    async def save(self, user_id: int, state: UserState) -> None:
        """Persist the whole state for ``user_id``.

        Raises:
            DataTooLarge: A field exceeds its ceiling; nothing is written.
            StoreError: The store write failed or timed out.
        """
        history, preferences, session = self._validate(state)

        async def _upsert(s):
            await UserStateRepository(s).upsert(
                user_id=user_id,
                persona_id=state.persona_id,
                session=session,
                history=history,
                preferences=preferences,
            )

        await self.db.run(_upsert)
        await self.cache.put(user_id, copy.deepcopy(state))

    async def list_all(self) -> dict[int, UserState]:
        """Full scan of stored states. Undecodable rows are skipped."""
        records = await self.db.run(lambda s: UserStateRepository(s).list_all())
        states: dict[int, UserState] = {}
        for record in records:
            try:
                states[record.user_id] = decode_record(record)
            except SerializationError as e:
                logger.warning(f"Skipping user {record.user_id} (kind={e.kind}): {e}")
        return states

    async def evict_stale(self) -> int:
        return await self.cache.evict_stale()

    async def invalidate(self, user_id: int) -> None:
        await self.cache.invalidate(user_id)
