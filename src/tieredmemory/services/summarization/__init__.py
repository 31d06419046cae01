"""Text summarization service package."""
from .base import (
    SummarizationService,
    SummarizationServicePluginBase,
    EXT_SUMMARIZATION_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_summarization_service(v: Variables = None) -> SummarizationService:
    """Get the summarization service instance."""
    return get_extension(EXT_SUMMARIZATION_SERVICE, v)


__all__ = (
    'SummarizationService',
    'SummarizationServicePluginBase',
    'get_summarization_service',
    'EXT_SUMMARIZATION_SERVICE',
)
