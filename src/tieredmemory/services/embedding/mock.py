from logging import Logger

import numpy as np
from scitrera_app_framework import Variables as Variables

from ...config import EmbeddingProviderType, TIEREDMEMORY_EMBEDDING_DIMENSIONS
from ...utils import compute_content_hash, normalize_tokens

from .base import EmbeddingProvider, EmbeddingProviderPluginBase

DEFAULT_EMBEDDING_DIMENSIONS = 384


def _seeded_vector(key: str, dimensions: int) -> np.ndarray:
    seed = int(compute_content_hash(key)[:16], 16)
    return np.random.default_rng(seed).random(dimensions)


class MockEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-tokens embedder for tests and offline development.

    Every token maps to a fixed non-negative vector seeded from its hash; a text is the
    normalized mean of its token vectors. Identical texts embed identically, texts that
    share words score closer than texts that don't, and cosine similarity is never
    negative. Not a substitute for a real model.
    """

    def __init__(self, v: Variables = None, dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS):
        super().__init__(v, dimensions)
        self.logger.info("Initialized MockEmbeddingProvider with dimensions=%d", dimensions)

    async def embed(self, text: str) -> list[float]:
        tokens = sorted(normalize_tokens(text)) or [text]
        vector = np.mean([_seeded_vector(token, self._dimensions) for token in tokens], axis=0)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class MockEmbeddingProviderPlugin(EmbeddingProviderPluginBase):
    PROVIDER_NAME = EmbeddingProviderType.MOCK

    def initialize(self, v: Variables, logger: Logger) -> MockEmbeddingProvider:
        return MockEmbeddingProvider(
            v=v,
            dimensions=v.environ(TIEREDMEMORY_EMBEDDING_DIMENSIONS, default=DEFAULT_EMBEDDING_DIMENSIONS, type_fn=int)
        )
