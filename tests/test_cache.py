"""Tests for the shared TTL cache."""

import asyncio

import pytest

from gasflow.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    @pytest.mark.asyncio
    async def test_set_and_get(self):
        cache = TTLCache(default_ttl=30)
        await cache.set(("0xabc", 84532), 5)

        assert await cache.get(("0xabc", 84532)) == 5
        assert await cache.contains(("0xabc", 84532))

    @pytest.mark.asyncio
    async def test_entries_expire(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=30, clock=clock)
        await cache.set("k", "v")

        clock.now += 29
        assert await cache.get("k") == "v"
        clock.now += 2
        assert await cache.get("k") is None
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=30, clock=clock)
        await cache.set("short", 1, ttl=1)

        clock.now += 2
        assert await cache.get("short") is None

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        cache = TTLCache(default_ttl=30, max_size=2)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("a") == 1
        assert await cache.get("b") is None
        assert await cache.get("c") == 3

    @pytest.mark.asyncio
    async def test_get_or_load_collapses_concurrent_misses(self):
        cache = TTLCache(default_ttl=30)
        calls = 0
        release = asyncio.Event()

        async def loader():
            nonlocal calls
            calls += 1
            await release.wait()
            return "loaded"

        tasks = [asyncio.create_task(cache.get_or_load("prices", loader)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["loaded"] * 5
        assert calls == 1

    @pytest.mark.asyncio
    async def test_get_or_load_failure_is_not_cached(self):
        cache = TTLCache(default_ttl=30)

        async def failing():
            raise RuntimeError("feed down")

        async def working():
            return 7

        with pytest.raises(RuntimeError):
            await cache.get_or_load("k", failing)
        assert await cache.get_or_load("k", working) == 7

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = TTLCache()
        await cache.set("a", 1)
        await cache.clear()

        assert cache.size() == 0
