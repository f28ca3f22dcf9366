"""Repository for per-user state rows."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from personabook.core.timezone import utc_now
from personabook.db.models import UserStateRecord
from personabook.db.repositories.base import BaseRepository


class UserStateRepository(BaseRepository[UserStateRecord]):
    """Repository for user state operations."""

    model = UserStateRecord

    async def upsert(
        self,
        user_id: int,
        persona_id: str,
        session: dict[str, Any] | None,
        history: list[dict[str, Any]],
        preferences: dict[str, Any],
    ) -> None:
        """Insert or replace the full row for a user (last write wins).

        Uses a single INSERT ... ON CONFLICT statement so two first-time writes
        for the same user cannot collide on the primary key.
        """
        now = utc_now()
        stmt = sqlite_insert(UserStateRecord).values(
            user_id=user_id,
            persona_id=persona_id,
            session=session,
            history=history,
            preferences=preferences,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserStateRecord.user_id],
            set_={
                "persona_id": stmt.excluded.persona_id,
                "session": stmt.excluded.session,
                "history": stmt.excluded.history,
                "preferences": stmt.excluded.preferences,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.session.execute(stmt)

    async def list_all(self) -> list[UserStateRecord]:
        """List all user rows ordered by id."""
        return await self._all(select(UserStateRecord).order_by(UserStateRecord.user_id))
