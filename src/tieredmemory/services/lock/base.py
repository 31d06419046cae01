"""Lock Service - lease locks that serialize consolidation and decay per user."""
import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_LOCK_SERVICE, DEFAULT_TIEREDMEMORY_LOCK_SERVICE
from ...exceptions import LockUnavailable
from .._constants import EXT_LOCK_SERVICE


def user_lock_key(user_id: str) -> str:
    """Lock key serializing consolidation, decay and cleanup for one user."""
    return f"user:{user_id}"


class LockService(ABC):
    """
    Lease locks with a TTL. An expired lease may be taken over by another
    holder, so a crashed worker never blocks a user forever.
    """

    default_ttl_seconds: float = 300.0
    default_wait_seconds: float = 0.0
    poll_interval_seconds: float = 0.05

    @abstractmethod
    async def acquire(self, key: str, ttl_seconds: Optional[float] = None) -> Optional[str]:
        """Try once to take the lease. Returns a token, or None if it is held."""
        pass

    @abstractmethod
    async def release(self, key: str, token: str) -> bool:
        """Release the lease if ``token`` still owns it."""
        pass

    @abstractmethod
    async def is_locked(self, key: str) -> bool:
        pass

    @asynccontextmanager
    async def hold(self, key: str, ttl_seconds: Optional[float] = None,
                   wait_seconds: Optional[float] = None) -> AsyncIterator[str]:
        """
        Hold the lease for the duration of the block.

        Raises:
            LockUnavailable: the lease is still held after ``wait_seconds``
        """
        wait = self.default_wait_seconds if wait_seconds is None else wait_seconds
        deadline = time.monotonic() + max(0.0, wait)
        token = await self.acquire(key, ttl_seconds)
        while token is None:
            if time.monotonic() >= deadline:
                raise LockUnavailable(key)
            await asyncio.sleep(self.poll_interval_seconds)
            token = await self.acquire(key, ttl_seconds)
        try:
            yield token
        finally:
            await self.release(key, token)


# noinspection PyAbstractClass
class LockServicePluginBase(Plugin):
    """Base plugin for lock service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_LOCK_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_LOCK_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_LOCK_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_LOCK_SERVICE, DEFAULT_TIEREDMEMORY_LOCK_SERVICE)
