"""Unit tests for the in-memory lease lock."""
import asyncio

import pytest

from tieredmemory.exceptions import LockUnavailable
from tieredmemory.services.lock import user_lock_key
from tieredmemory.services.lock.in_memory import InMemoryLockService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lock(clock):
    return InMemoryLockService(ttl_seconds=30, timer=clock)


class TestInMemoryLockService:

    async def test_acquire_is_exclusive(self, lock):
        token = await lock.acquire("user:u1")
        assert token
        assert await lock.acquire("user:u1") is None
        assert await lock.is_locked("user:u1")
        assert await lock.acquire("user:u2") is not None

    async def test_release_requires_owner(self, lock):
        token = await lock.acquire("user:u1")
        assert not await lock.release("user:u1", "someone-else")
        assert await lock.release("user:u1", token)
        assert not await lock.is_locked("user:u1")

    async def test_expired_lease_can_be_taken_over(self, lock, clock):
        stale = await lock.acquire("user:u1")
        clock.now += 31
        fresh = await lock.acquire("user:u1")

        assert fresh is not None and fresh != stale
        assert not await lock.release("user:u1", stale)

    async def test_hold_releases_on_exit(self, lock):
        async with lock.hold("user:u1") as token:
            assert token
            assert await lock.is_locked("user:u1")
        assert not await lock.is_locked("user:u1")

    async def test_hold_releases_on_error(self, lock):
        with pytest.raises(RuntimeError):
            async with lock.hold("user:u1"):
                raise RuntimeError("boom")
        assert not await lock.is_locked("user:u1")

    async def test_hold_fails_fast_when_held(self, lock):
        await lock.acquire("user:u1")
        with pytest.raises(LockUnavailable) as exc_info:
            async with lock.hold("user:u1"):
                pass
        assert exc_info.value.key == "user:u1"
        assert exc_info.value.retryable

    async def test_hold_waits_for_release(self):
        lock = InMemoryLockService(ttl_seconds=30)
        token = await lock.acquire("user:u1")

        async def release_soon():
            await asyncio.sleep(0.05)
            await lock.release("user:u1", token)

        releaser = asyncio.create_task(release_soon())
        async with lock.hold("user:u1", wait_seconds=2.0):
            assert await lock.is_locked("user:u1")
        await releaser

    def test_user_lock_key(self):
        assert user_lock_key("u1") == "user:u1"
