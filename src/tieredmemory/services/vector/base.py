"""Vector Index - per-user namespaced similarity search."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_VECTOR_INDEX, DEFAULT_TIEREDMEMORY_VECTOR_INDEX
from ...utils import DistanceConvention, distance_to_similarity
from .._constants import EXT_VECTOR_INDEX


def user_namespace(user_id: str) -> str:
    """Vector namespace holding one user's memories."""
    return f"user_memories_{user_id}"


@dataclass
class VectorMatch:
    """A search hit. ``raw_score`` is in the index's own convention."""
    id: str
    raw_score: float
    similarity: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndex(ABC):
    """
    Abstract vector index.

    Implementations declare ``convention`` so raw scores can be normalized to a
    [0, 1] similarity in one place (``query``).
    """

    convention: DistanceConvention = DistanceConvention.COSINE_DISTANCE

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    @abstractmethod
    async def upsert(self, namespace: str, item_id: str, vector: list[float],
                     metadata: Optional[dict[str, Any]] = None) -> None:
        """Insert or replace a vector."""
        pass

    @abstractmethod
    async def search(self, namespace: str, vector: list[float], top_k: int = 10,
                     where: Optional[dict[str, Any]] = None) -> list[VectorMatch]:
        """Nearest neighbours first; ``raw_score`` in the index's convention."""
        pass

    @abstractmethod
    async def delete(self, namespace: str, item_ids: list[str]) -> int:
        """Delete vectors by id. Returns count removed."""
        pass

    @abstractmethod
    async def delete_namespace(self, namespace: str) -> int:
        """Drop a whole namespace. Returns count removed."""
        pass

    @abstractmethod
    async def count(self, namespace: str) -> int:
        pass

    async def health_check(self) -> bool:
        return True

    async def query(self, namespace: str, vector: list[float], top_k: int = 10, min_similarity: float = 0.0,
                    where: Optional[dict[str, Any]] = None) -> list[VectorMatch]:
        """
        Search and normalize scores to similarity in [0, 1].

        Args:
            namespace: Namespace to search
            vector: Query vector
            top_k: Maximum matches to return
            min_similarity: Drop matches below this normalized similarity
            where: Exact-match metadata filter

        Returns:
            Matches sorted by descending similarity
        """
        matches = await self.search(namespace, vector, top_k=top_k, where=where)
        for match in matches:
            match.similarity = distance_to_similarity(match.raw_score, self.convention)
        matches = [m for m in matches if m.similarity >= min_similarity]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches


# noinspection PyAbstractClass
class VectorIndexPluginBase(Plugin):
    """Base plugin for vector index."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_VECTOR_INDEX}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_VECTOR_INDEX

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_VECTOR_INDEX, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_VECTOR_INDEX, DEFAULT_TIEREDMEMORY_VECTOR_INDEX)
