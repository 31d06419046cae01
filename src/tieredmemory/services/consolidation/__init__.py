"""Consolidation service package."""
from scitrera_app_framework import Variables, get_extension

from .base import (
    ConsolidationResult,
    ConsolidationService,
    ConsolidationServicePluginBase,
    EXT_CONSOLIDATION_SERVICE,
)


def get_consolidation_service(v: Variables = None) -> ConsolidationService:
    """Get the consolidation service instance."""
    return get_extension(EXT_CONSOLIDATION_SERVICE, v)


__all__ = (
    'ConsolidationResult',
    'ConsolidationService',
    'ConsolidationServicePluginBase',
    'get_consolidation_service',
    'EXT_CONSOLIDATION_SERVICE',
)
