"""Memory extraction service package."""
from .base import (
    Entity,
    ExtractionRule,
    ExtractionService,
    ExtractionServicePluginBase,
    EXT_EXTRACTION_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_extraction_service(v: Variables = None) -> ExtractionService:
    """Get the extraction service instance."""
    return get_extension(EXT_EXTRACTION_SERVICE, v)


__all__ = (
    'Entity',
    'ExtractionRule',
    'ExtractionService',
    'ExtractionServicePluginBase',
    'get_extraction_service',
    'EXT_EXTRACTION_SERVICE',
)
