"""Memory engine facade package."""
from scitrera_app_framework import Variables, get_extension

from .base import MemoryEngine, MemoryEnginePluginBase, EXT_MEMORY_ENGINE


def get_memory_engine(v: Variables = None) -> MemoryEngine:
    """Get the memory engine instance."""
    return get_extension(EXT_MEMORY_ENGINE, v)


__all__ = (
    'MemoryEngine',
    'MemoryEnginePluginBase',
    'get_memory_engine',
    'EXT_MEMORY_ENGINE',
)
