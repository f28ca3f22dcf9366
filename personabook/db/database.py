"""Database connection manager for PersonaBook."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from personabook.core.errors import PersonaBookError, StoreError
from personabook.db.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _enable_foreign_keys(dbapi_conn: Any, connection_record: Any) -> None:
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Manages async SQLite database connections.

    Every store call made through ``run`` is bounded by ``timeout_seconds``;
    a timeout or driver failure surfaces as ``StoreError``.
    """

    def __init__(self, db_path: Path | str = "personabook.db", timeout_seconds: float = 10.0):
        self.db_path = Path(db_path)
        self.db_url = f"sqlite+aiosqlite:///{self.db_path}"
        self.timeout_seconds = timeout_seconds

        self.engine = create_async_engine(
            self.db_url,
            echo=False,
            future=True,
            # sqlite busy timeout: concurrent writers wait instead of failing fast
            connect_args={"timeout": timeout_seconds},
        )

        event.listen(self.engine.sync_engine, "connect", _enable_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init_db(self) -> None:
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional session."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def run(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``operation`` in its own transaction under the store timeout.

        Domain errors raised by the operation propagate unchanged; driver
        errors and timeouts are wrapped in ``StoreError``.
        """

        async def _transaction() -> T:
            async with self.session() as session:
                return await operation(session)

        try:
            return await asyncio.wait_for(_transaction(), timeout=self.timeout_seconds)
        except PersonaBookError:
            raise
        except TimeoutError as e:
            raise StoreError(f"store call timed out after {self.timeout_seconds}s") from e
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(str(e)) from e
