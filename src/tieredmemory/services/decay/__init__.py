"""Decay service package."""
from scitrera_app_framework import Variables, get_extension

from .base import (
    CleanupResult,
    DecayResult,
    DecayService,
    DecayServicePluginBase,
    EXT_DECAY_SERVICE,
    calculate_importance_score,
    compute_recency_factor,
    should_forget,
)


def get_decay_service(v: Variables = None) -> DecayService:
    """Get the decay service instance."""
    return get_extension(EXT_DECAY_SERVICE, v)


__all__ = (
    'CleanupResult',
    'DecayResult',
    'DecayService',
    'DecayServicePluginBase',
    'calculate_importance_score',
    'compute_recency_factor',
    'should_forget',
    'get_decay_service',
    'EXT_DECAY_SERVICE',
)
