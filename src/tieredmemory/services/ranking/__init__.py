"""Relevance ranking service package."""
from .base import (
    RankCandidate,
    RankingService,
    RankingServicePluginBase,
    RankingWeights,
    EXT_RANKING_SERVICE,
)

from scitrera_app_framework import Variables, get_extension


def get_ranking_service(v: Variables = None) -> RankingService:
    """Get the ranking service instance."""
    return get_extension(EXT_RANKING_SERVICE, v)


__all__ = (
    'RankCandidate',
    'RankingService',
    'RankingServicePluginBase',
    'RankingWeights',
    'get_ranking_service',
    'EXT_RANKING_SERVICE',
)
