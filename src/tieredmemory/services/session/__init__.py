"""Session context (short-term and working tiers) package."""
from .base import (
    SessionContextService,
    SessionServicePluginBase,
    EXT_SESSION_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_session_service(v: Variables = None) -> SessionContextService:
    """Get the session context service instance."""
    return get_extension(EXT_SESSION_SERVICE, v)


__all__ = (
    'SessionContextService',
    'SessionServicePluginBase',
    'get_session_service',
    'EXT_SESSION_SERVICE',
)
