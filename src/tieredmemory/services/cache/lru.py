"""In-memory LRU cache service with per-item TTL."""
import math
import time
from logging import Logger
from typing import Optional, Any

from scitrera_app_framework import Variables, get_logger

from .base import CacheService, CacheServicePluginBase

# Environment variable constants (specific to this implementation)
TIEREDMEMORY_CACHE_LRU_MAXSIZE = 'TIEREDMEMORY_CACHE_LRU_MAXSIZE'
DEFAULT_TIEREDMEMORY_CACHE_LRU_MAXSIZE = 4096


def _time_to_use(_key, item, now) -> float:
    _, ttl_seconds = item
    return math.inf if ttl_seconds is None else now + ttl_seconds


class LRUCacheService(CacheService):
    """In-memory LRU cache service with optional TTL support.

    Uses cachetools.TLRUCache so each item carries its own expiry; expired items
    are evicted lazily on access and eagerly when the cache is full.
    """

    def __init__(
            self,
            v: Variables = None,
            logger: Logger = None,
            maxsize: int = DEFAULT_TIEREDMEMORY_CACHE_LRU_MAXSIZE,
            timer=time.monotonic,
    ):
        from cachetools import TLRUCache
        self._logger = logger or get_logger(v, name=self.__class__.__name__)
        self._cache: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_time_to_use, timer=timer)
        self._maxsize = maxsize
        self._logger.info("Initialized LRUCacheService with maxsize=%s", maxsize)

    async def get(self, key: str) -> Optional[Any]:
        item = self._cache.get(key)
        if item is None:
            return None
        return item[0]

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> bool:
        if ttl_seconds is not None and ttl_seconds <= 0:
            self._cache.pop(key, None)
            return False
        self._cache[key] = (value, ttl_seconds)
        self._logger.debug("Cache set: key=%s, ttl=%s", key, ttl_seconds)
        return True

    async def add(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> bool:
        if key in self._cache:
            return False
        return await self.set(key, value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        if self._cache.pop(key, None) is not None:
            self._logger.debug("Cache delete: key=%s", key)
            return True
        return False

    async def exists(self, key: str) -> bool:
        return key in self._cache

    async def clear_prefix(self, prefix: str) -> int:
        keys_to_delete = [k for k in list(self._cache.keys()) if k.startswith(prefix)]
        for key in keys_to_delete:
            self._cache.pop(key, None)
        if keys_to_delete:
            self._logger.debug("Cache clear_prefix: prefix=%s, deleted=%s", prefix, len(keys_to_delete))
        return len(keys_to_delete)


class LRUCacheServicePlugin(CacheServicePluginBase):
    """Plugin for LRU cache service."""
    PROVIDER_NAME = 'lru'

    def initialize(self, v: Variables, logger: Logger) -> Optional[LRUCacheService]:
        maxsize = v.environ(
            TIEREDMEMORY_CACHE_LRU_MAXSIZE,
            default=DEFAULT_TIEREDMEMORY_CACHE_LRU_MAXSIZE,
            type_fn=int,
        )
        return LRUCacheService(v=v, logger=logger, maxsize=maxsize)
