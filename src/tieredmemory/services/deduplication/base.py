"""Deduplication Service - decides whether a candidate is new, a repeat, or a contradiction."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_DEDUPLICATION_SERVICE, DEFAULT_TIEREDMEMORY_DEDUPLICATION_SERVICE
from ...models import MemoryEntry
from .._constants import EXT_DEDUPLICATION_SERVICE


class DedupAction(str, Enum):
    CREATE = "create"
    MERGE = "merge"
    CONTRADICT = "contradict"


@dataclass
class DedupDecision:
    action: DedupAction
    target: Optional[MemoryEntry] = None
    similarity: float = 0.0
    best_similarity: float = 0.0  # highest similarity against any active entry, used for novelty


class DeduplicationService(ABC):

    @abstractmethod
    def similarity(self, a: str, b: str) -> float:
        """Near-duplicate similarity in [0, 1]."""
        pass

    @abstractmethod
    def classify(self, content: str, existing: Iterable[MemoryEntry]) -> DedupDecision:
        """Compare candidate content against the user's active entries."""
        pass


# noinspection PyAbstractClass
class DeduplicationServicePluginBase(Plugin):
    """Base plugin for deduplication service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_DEDUPLICATION_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_DEDUPLICATION_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_DEDUPLICATION_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_DEDUPLICATION_SERVICE, DEFAULT_TIEREDMEMORY_DEDUPLICATION_SERVICE)
