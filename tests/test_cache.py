"""Tests for the TTL state cache and its reader/writer lock."""

import asyncio

from personabook.stores.cache import ReadWriteLock, TTLCache


class TestTTLCache:
    """Freshness, eviction and invalidation."""

    async def test_fresh_entry_is_returned(self, cache, monotonic):
        await cache.put(1, "state")
        monotonic.advance(299)
        assert await cache.get(1) == "state"

    async def test_stale_entry_is_a_miss(self, cache, monotonic):
        await cache.put(1, "state")
        monotonic.advance(300)
        assert await cache.get(1) is None

    async def test_missing_key(self, cache):
        assert await cache.get(42) is None

    async def test_put_refreshes_loaded_at(self, cache, monotonic):
        await cache.put(1, "old")
        monotonic.advance(200)
        await cache.put(1, "new")
        monotonic.advance(200)
        assert await cache.get(1) == "new"

    async def test_evict_stale_removes_only_stale_entries(self, cache, monotonic):
        await cache.put(1, "a")
        monotonic.advance(250)
        await cache.put(2, "b")
        monotonic.advance(100)

        evicted = await cache.evict_stale()

        assert evicted == 1
        assert len(cache) == 1
        assert await cache.get(2) == "b"

    async def test_evict_stale_on_empty_cache(self, cache):
        assert await cache.evict_stale() == 0

    async def test_invalidate(self, cache):
        await cache.put(1, "a")
        await cache.invalidate(1)
        await cache.invalidate(999)
        assert await cache.get(1) is None

    async def test_fill_caches_when_nothing_was_written(self, cache):
        since = cache.generation

        assert await cache.fill(1, "loaded", since) == "loaded"
        assert await cache.get(1) == "loaded"

    async def test_fill_loses_to_a_put_made_during_the_read(self, cache, monotonic):
        await cache.put(1, "old")
        monotonic.advance(301)
        since = cache.generation
        await cache.put(1, "new")

        assert await cache.fill(1, "old", since) == "new"
        assert await cache.get(1) == "new"

    async def test_fill_after_invalidate_leaves_key_empty(self, cache):
        since = cache.generation
        await cache.invalidate(1)

        assert await cache.fill(1, "loaded", since) == "loaded"
        assert await cache.get(1) is None

    async def test_put_on_another_key_does_not_block_fill(self, cache):
        since = cache.generation
        await cache.put(2, "other")

        await cache.fill(1, "loaded", since)
        assert await cache.get(1) == "loaded"

    async def test_custom_ttl(self, monotonic):
        short = TTLCache(ttl_seconds=10, clock=monotonic)
        await short.put(1, "a")
        monotonic.advance(11)
        assert await short.get(1) is None


class TestReadWriteLock:
    """Readers share the lock; writers are exclusive."""

    async def test_readers_run_concurrently(self):
        lock = ReadWriteLock()
        inside = 0
        peak = 0

        async def reader():
            nonlocal inside, peak
            async with lock.read():
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(*(reader() for _ in range(3)))
        assert peak == 3

    async def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        events: list[str] = []
        reader_in = asyncio.Event()

        async def reader():
            async with lock.read():
                reader_in.set()
                await asyncio.sleep(0.02)
                events.append("read-done")

        async def writer():
            await reader_in.wait()
            async with lock.write():
                events.append("write")

        await asyncio.gather(reader(), writer())
        assert events == ["read-done", "write"]

    async def test_writers_are_exclusive(self):
        lock = ReadWriteLock()
        inside = 0
        peak = 0

        async def writer():
            nonlocal inside, peak
            async with lock.write():
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.005)
                inside -= 1

        await asyncio.gather(*(writer() for _ in range(3)))
        assert peak == 1
