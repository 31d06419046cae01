"""Context budget composer package."""
from scitrera_app_framework import Variables, get_extension

from .base import (
    ContextComposer,
    ContextComposerPluginBase,
    TokenAllocation,
    ALLOCATIONS,
    EXT_CONTEXT_SERVICE,
)


def get_context_composer(v: Variables = None) -> ContextComposer:
    """Get the context composer instance."""
    return get_extension(EXT_CONTEXT_SERVICE, v)


__all__ = (
    'ContextComposer',
    'ContextComposerPluginBase',
    'TokenAllocation',
    'ALLOCATIONS',
    'get_context_composer',
    'EXT_CONTEXT_SERVICE',
)
