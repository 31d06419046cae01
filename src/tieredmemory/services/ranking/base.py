"""Ranking Service - scores long-term memory candidates for a query."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_RANKING_SERVICE, DEFAULT_TIEREDMEMORY_RANKING_SERVICE
from ...models import MemoryEntry, RankedMemory
from .._constants import EXT_RANKING_SERVICE


@dataclass
class RankingWeights:
    """Linear weights of the relevance score components."""
    recency: float = 0.25
    frequency: float = 0.20
    similarity: float = 0.30
    importance: float = 0.15
    valence: float = 0.10
    intent_bonus: float = 0.2
    recency_decay_per_day: float = 0.05


@dataclass
class RankCandidate:
    """
    A memory to rank.

    ``similarity`` is already normalized to [0, 1]. When only ``vector`` is
    known, similarity is computed against the query embedding.
    """
    entry: MemoryEntry
    similarity: Optional[float] = None
    vector: Optional[list[float]] = None


class RankingService(ABC):
    """Pure scoring interface: no I/O and no mutation of entries."""

    @abstractmethod
    def rank(
            self,
            candidates: list[RankCandidate],
            query_embedding: Optional[list[float]] = None,
            intent: Optional[str] = None,
            now: Optional[datetime] = None,
    ) -> list[RankedMemory]:
        """
        Score and order candidates, best first.

        Args:
            candidates: Memories with optional precomputed similarity
            query_embedding: Embedding of the current message, if available
            intent: Optional intent tag of the current message
            now: Reference time (defaults to current UTC time)

        Returns:
            RankedMemory list sorted by descending score
        """
        pass


# noinspection PyAbstractClass
class RankingServicePluginBase(Plugin):
    """Base plugin for ranking service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_RANKING_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_RANKING_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_RANKING_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_RANKING_SERVICE, DEFAULT_TIEREDMEMORY_RANKING_SERVICE)
