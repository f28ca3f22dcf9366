"""In-memory TTL cache for user state.

One shared map from user id to (state, loaded-at). Reads take a shared lock
and run concurrently; writes and evictions take the exclusive lock.
Read-through fills are conditional on the per-key write generation.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class ReadWriteLock:
    """Asyncio reader/writer lock (many readers or one writer)."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class CacheEntry(Generic[V]):
    value: V
    loaded_at: float


class TTLCache(Generic[V]):
    """Keyed cache whose entries are fresh for ``ttl_seconds`` after loading.

    Args:
        ttl_seconds: Freshness window.
        clock: Monotonic clock in seconds; tests inject a fake one.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[int, CacheEntry[V]] = {}
        self._lock = ReadWriteLock()
        self._generation = 0
        self._written: dict[int, int] = {}

    def _is_fresh(self, entry: CacheEntry[V], now: float) -> bool:
        return now - entry.loaded_at < self.ttl_seconds

    async def get(self, key: int) -> V | None:
        """Return the cached value if it is still fresh, otherwise None."""
        async with self._lock.read():
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(entry, self._clock()):
                return None
            return entry.value

    @property
    def generation(self) -> int:
        """Counter bumped by every ``put`` and ``invalidate``.

        Take it before a slow store read and hand it to ``fill`` so the
        read's result cannot replace anything written while it was running.
        """
        return self._generation

    def _mark_written(self, key: int) -> None:
        self._generation += 1
        self._written[key] = self._generation

    async def put(self, key: int, value: V) -> None:
        async with self._lock.write():
            self._mark_written(key)
            self._entries[key] = CacheEntry(value=value, loaded_at=self._clock())

    async def fill(self, key: int, value: V, since: int) -> V:
        """Cache a value read from the store unless a newer write got there first.

        Args:
            key: Cache key.
            value: Value loaded from the store.
            since: ``generation`` observed before the store read began.

        Returns:
            The value now cached for ``key``: ``value``, or the newer one.
        """
        async with self._lock.write():
            if self._written.get(key, 0) > since:
                entry = self._entries.get(key)
                return entry.value if entry is not None else value
            self._entries[key] = CacheEntry(value=value, loaded_at=self._clock())
            return value

    async def invalidate(self, key: int) -> None:
        async with self._lock.write():
            self._mark_written(key)
            self._entries.pop(key, None)

    async def evict_stale(self) -> int:
        """Drop every entry older than the TTL.

        Returns:
            Number of entries removed.
        """
        async with self._lock.write():
            now = self._clock()
            stale = [k for k, entry in self._entries.items() if not self._is_fresh(entry, now)]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug(f"Evicted {len(stale)} stale cache entries")
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
