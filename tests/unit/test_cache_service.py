"""Unit tests for the ephemeral cache services."""
import pytest

from tieredmemory.services.cache.lru import LRUCacheService
from tieredmemory.services.cache.noop import NoOpCacheService


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return LRUCacheService(maxsize=3, timer=clock)


class TestLRUCacheService:

    async def test_set_and_get(self, cache):
        assert await cache.set("a", {"x": 1})
        assert await cache.get("a") == {"x": 1}
        assert await cache.get("missing") is None

    async def test_ttl_expiry(self, cache, clock):
        await cache.set("a", 1, ttl_seconds=10)
        clock.now = 9
        assert await cache.get("a") == 1
        clock.now = 11
        assert await cache.get("a") is None

    async def test_non_positive_ttl_is_not_stored(self, cache):
        assert not await cache.set("a", 1, ttl_seconds=0)
        assert not await cache.exists("a")

    async def test_lru_eviction(self, cache):
        for key in ("a", "b", "c"):
            await cache.set(key, key)
        await cache.get("a")
        await cache.set("d", "d")
        assert await cache.exists("a")
        assert not await cache.exists("b")

    async def test_add_only_when_absent(self, cache):
        assert await cache.add("a", 1)
        assert not await cache.add("a", 2)
        assert await cache.get("a") == 1

    async def test_clear_prefix(self, cache):
        await cache.set("session:u1:c1", 1)
        await cache.set("session:u1:c2", 2)
        await cache.set("session:u2:c1", 3)
        assert await cache.clear_prefix("session:u1:") == 2
        assert await cache.exists("session:u2:c1")

    async def test_get_or_set(self, cache):
        calls = []

        async def factory():
            calls.append(1)
            return "value"

        assert await cache.get_or_set("k", factory) == "value"
        assert await cache.get_or_set("k", factory) == "value"
        assert len(calls) == 1


class TestNoOpCacheService:

    async def test_always_misses(self):
        cache = NoOpCacheService()
        await cache.set("a", 1)
        assert await cache.get("a") is None
        assert await cache.clear_prefix("") == 0
