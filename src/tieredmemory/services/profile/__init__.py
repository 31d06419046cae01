"""User profile service package."""
from .base import (
    ProfileService,
    ProfileServicePluginBase,
    EXT_PROFILE_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_profile_service(v: Variables = None) -> ProfileService:
    """Get the profile service instance."""
    return get_extension(EXT_PROFILE_SERVICE, v)


__all__ = (
    'ProfileService',
    'ProfileServicePluginBase',
    'get_profile_service',
    'EXT_PROFILE_SERVICE',
)
