"""No-op cache service - stores nothing, every lookup misses."""
from logging import Logger
from typing import Optional, Any

from scitrera_app_framework.api import Variables

from .base import CacheService, CacheServicePluginBase


class NoOpCacheService(CacheService):
    """No-op cache service."""

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> bool:
        return False

    async def add(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return False

    async def exists(self, key: str) -> bool:
        return False

    async def clear_prefix(self, prefix: str) -> int:
        return 0

    async def get_or_set(self, key: str, factory, ttl_seconds: Optional[float] = None) -> Any:
        return await factory()


class NoOpCacheServicePlugin(CacheServicePluginBase):
    """Plugin for no cache service."""
    PROVIDER_NAME = 'none'

    def initialize(self, v: Variables, logger: Logger) -> Optional[CacheService]:
        return NoOpCacheService()
