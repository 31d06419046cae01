"""Near-duplicate and contradiction detection package."""
from .base import (
    DedupAction,
    DedupDecision,
    DeduplicationService,
    DeduplicationServicePluginBase,
    EXT_DEDUPLICATION_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_deduplication_service(v: Variables = None) -> DeduplicationService:
    """Get the deduplication service instance."""
    return get_extension(EXT_DEDUPLICATION_SERVICE, v)


__all__ = (
    'DedupAction',
    'DedupDecision',
    'DeduplicationService',
    'DeduplicationServicePluginBase',
    'get_deduplication_service',
    'EXT_DEDUPLICATION_SERVICE',
)
