"""Cache Service - Pluggable ephemeral key-value store with TTL."""
from abc import ABC, abstractmethod
from typing import Optional, Any

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_CACHE_SERVICE, DEFAULT_TIEREDMEMORY_CACHE_SERVICE
from .._constants import EXT_CACHE_SERVICE


class CacheService(ABC):
    """Abstract cache service interface.

    Backs session context, retrieval results and embedding vectors. Values
    should be JSON-serializable so that networked backends can be swapped in.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        pass

    @abstractmethod
    async def set(
            self,
            key: str,
            value: Any,
            ttl_seconds: Optional[float] = None
    ) -> bool:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (must be JSON-serializable)
            ttl_seconds: Time-to-live in seconds (None = no expiry)

        Returns:
            True if successfully cached
        """
        pass

    @abstractmethod
    async def add(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> bool:
        """Set value only if the key is absent (or expired).

        Returns:
            True if the value was stored, False if the key already existed
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache.

        Returns:
            True if key was deleted, False if not found
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists in cache and has not expired."""
        pass

    @abstractmethod
    async def clear_prefix(self, prefix: str) -> int:
        """Clear all keys with given prefix.

        Returns:
            Number of keys deleted
        """
        pass

    async def get_or_set(
            self,
            key: str,
            factory,
            ttl_seconds: Optional[float] = None,
    ) -> Any:
        """Get from cache or compute and cache.

        Args:
            key: Cache key
            factory: Async callable to produce value if not cached
            ttl_seconds: TTL for cached value

        Returns:
            Cached or computed value
        """
        value = await self.get(key)
        if value is not None:
            return value

        value = await factory()
        await self.set(key, value, ttl_seconds)
        return value


# noinspection PyAbstractClass
class CacheServicePluginBase(Plugin):
    """Base plugin for cache service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_CACHE_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_CACHE_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_CACHE_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_CACHE_SERVICE, DEFAULT_TIEREDMEMORY_CACHE_SERVICE)
