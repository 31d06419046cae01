"""Vector index service package."""
from .base import (
    VectorIndex,
    VectorIndexPluginBase,
    VectorMatch,
    user_namespace,
    EXT_VECTOR_INDEX,
)

from scitrera_app_framework import Variables, get_extension


def get_vector_index(v: Variables = None) -> VectorIndex:
    """Get the vector index instance."""
    return get_extension(EXT_VECTOR_INDEX, v)


__all__ = (
    'VectorIndex',
    'VectorIndexPluginBase',
    'VectorMatch',
    'user_namespace',
    'get_vector_index',
    'EXT_VECTOR_INDEX',
)
