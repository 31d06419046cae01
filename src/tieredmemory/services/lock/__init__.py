"""Per-user lease lock package."""
from .base import (
    LockService,
    LockServicePluginBase,
    EXT_LOCK_SERVICE,
    user_lock_key,
)

from scitrera_app_framework import Variables, get_extension


def get_lock_service(v: Variables = None) -> LockService:
    """Get the lock service instance."""
    return get_extension(EXT_LOCK_SERVICE, v)


__all__ = (
    'LockService',
    'LockServicePluginBase',
    'get_lock_service',
    'user_lock_key',
    'EXT_LOCK_SERVICE',
)
