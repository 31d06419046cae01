"""
In-memory vector index.

Brute-force cosine search with numpy. Reports cosine distance (``1 - cos``,
range [0, 2]) like common vector databases do. Data is lost on restart.
"""
from logging import Logger
from typing import Any, Optional

import numpy as np
from scitrera_app_framework import Variables

from ...utils import DistanceConvention
from .base import VectorIndex, VectorIndexPluginBase, VectorMatch


class InMemoryVectorIndex(VectorIndex):
    """Dictionary-backed vector index, namespace -> {id -> (vector, metadata)}."""

    convention = DistanceConvention.COSINE_DISTANCE

    def __init__(self, v: Variables = None):
        super().__init__(v)
        self._namespaces: dict[str, dict[str, tuple[np.ndarray, dict[str, Any]]]] = {}
        self.logger.info("Initialized InMemoryVectorIndex")

    async def upsert(self, namespace: str, item_id: str, vector: list[float],
                     metadata: Optional[dict[str, Any]] = None) -> None:
        arr = np.asarray(vector, dtype=float)
        self._namespaces.setdefault(namespace, {})[item_id] = (arr, dict(metadata or {}))

    async def search(self, namespace: str, vector: list[float], top_k: int = 10,
                     where: Optional[dict[str, Any]] = None) -> list[VectorMatch]:
        items = self._namespaces.get(namespace)
        if not items:
            return []

        query = np.asarray(vector, dtype=float)
        query_norm = np.linalg.norm(query)
        matches = []
        for item_id, (arr, metadata) in items.items():
            if where and any(metadata.get(k) != val for k, val in where.items()):
                continue
            if arr.shape != query.shape:
                continue
            denom = np.linalg.norm(arr) * query_norm
            cos = float(np.dot(arr, query) / denom) if denom else 0.0
            matches.append(VectorMatch(id=item_id, raw_score=1.0 - cos, metadata=dict(metadata)))

        matches.sort(key=lambda m: m.raw_score)
        return matches[:top_k]

    async def delete(self, namespace: str, item_ids: list[str]) -> int:
        items = self._namespaces.get(namespace, {})
        removed = 0
        for item_id in item_ids:
            if items.pop(item_id, None) is not None:
                removed += 1
        return removed

    async def delete_namespace(self, namespace: str) -> int:
        return len(self._namespaces.pop(namespace, {}))

    async def count(self, namespace: str) -> int:
        return len(self._namespaces.get(namespace, {}))


class InMemoryVectorIndexPlugin(VectorIndexPluginBase):
    PROVIDER_NAME = 'in-memory'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return InMemoryVectorIndex(v=v)
