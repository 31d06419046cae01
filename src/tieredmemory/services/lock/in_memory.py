"""Process-local lease lock."""
import time
import uuid
from logging import Logger
from typing import Callable, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_LOCK_TTL_SECONDS, DEFAULT_TIEREDMEMORY_LOCK_TTL_SECONDS,
    TIEREDMEMORY_LOCK_WAIT_SECONDS, DEFAULT_TIEREDMEMORY_LOCK_WAIT_SECONDS,
)
from .base import LockService, LockServicePluginBase


class InMemoryLockService(LockService):
    """Leases live in a dict; acquire/release never await, so they are atomic on the event loop."""

    def __init__(self, v: Variables = None, ttl_seconds: float = DEFAULT_TIEREDMEMORY_LOCK_TTL_SECONDS,
                 wait_seconds: float = DEFAULT_TIEREDMEMORY_LOCK_WAIT_SECONDS,
                 timer: Callable[[], float] = time.monotonic):
        self.default_ttl_seconds = ttl_seconds
        self.default_wait_seconds = wait_seconds
        self._timer = timer
        self._leases: dict[str, tuple[str, float]] = {}  # key -> (token, expires_at)
        self.logger = get_logger(v, name=self.__class__.__name__)

    def _current(self, key: str) -> Optional[tuple[str, float]]:
        lease = self._leases.get(key)
        if lease is not None and lease[1] <= self._timer():
            self.logger.warning("Lease on %s expired without release; reclaiming", key)
            del self._leases[key]
            return None
        return lease

    async def acquire(self, key: str, ttl_seconds: Optional[float] = None) -> Optional[str]:
        if self._current(key) is not None:
            return None
        token = uuid.uuid4().hex
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._leases[key] = (token, self._timer() + ttl)
        return token

    async def release(self, key: str, token: str) -> bool:
        lease = self._leases.get(key)
        if lease is None or lease[0] != token:
            return False
        del self._leases[key]
        return True

    async def is_locked(self, key: str) -> bool:
        return self._current(key) is not None


class InMemoryLockServicePlugin(LockServicePluginBase):
    PROVIDER_NAME = 'in-memory'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return InMemoryLockService(
            v=v,
            ttl_seconds=v.environ(TIEREDMEMORY_LOCK_TTL_SECONDS, default=DEFAULT_TIEREDMEMORY_LOCK_TTL_SECONDS,
                                  type_fn=float),
            wait_seconds=v.environ(TIEREDMEMORY_LOCK_WAIT_SECONDS, default=DEFAULT_TIEREDMEMORY_LOCK_WAIT_SECONDS,
                                   type_fn=float),
        )
