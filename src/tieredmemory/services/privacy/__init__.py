"""Privacy policy service package."""
from .base import (
    PrivacyPolicy,
    PrivacyPolicyPluginBase,
    EXT_PRIVACY_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_privacy_policy(v: Variables = None) -> PrivacyPolicy:
    """Get the privacy policy instance."""
    return get_extension(EXT_PRIVACY_SERVICE, v)


__all__ = (
    'PrivacyPolicy',
    'PrivacyPolicyPluginBase',
    'get_privacy_policy',
    'EXT_PRIVACY_SERVICE',
)
