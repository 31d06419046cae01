from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger, Variables as Variables

from .base import EmbeddingProvider, EmbeddingServicePluginBase, EXT_EMBEDDING_PROVIDER
from ..cache import CacheService, EXT_CACHE_SERVICE
from ...config import TIEREDMEMORY_EMBEDDING_CACHE_TTL, DEFAULT_TIEREDMEMORY_EMBEDDING_CACHE_TTL
from ...exceptions import EmbeddingFailure, QuotaExceeded
from ...utils import compute_content_hash


class EmbeddingService:
    """
    Embedding service that wraps a provider and adds content-hash caching.

    Provider errors surface as EmbeddingFailure (or QuotaExceeded when the
    provider signals rate limiting) so callers can degrade uniformly.
    """

    def __init__(self, v: Variables = None, provider: EmbeddingProvider = None, cache: Optional[CacheService] = None,
                 cache_ttl_seconds: int = DEFAULT_TIEREDMEMORY_EMBEDDING_CACHE_TTL):
        self.provider = provider
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.logger = get_logger(v, name=self.__class__.__name__)

        self.logger.info(
            "Initialized EmbeddingService with provider: %s",
            provider.__class__.__name__,
        )

    @staticmethod
    def cache_key(text: str) -> str:
        return f"emb:{compute_content_hash(text)}"

    async def embed(self, text: str) -> list[float]:
        """Generate embedding with caching."""
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        cache_key = self.cache_key(text)
        if self.cache:
            cached = await self.cache.get(cache_key)
            if cached:
                self.logger.debug("Cache hit for embedding: %s", cache_key)
                return cached

        try:
            embedding = await self.provider.embed(text)
        except QuotaExceeded:
            raise
        except Exception as e:
            raise EmbeddingFailure(f"Embedding provider failed: {e}") from e

        if self.cache:
            await self.cache.set(cache_key, embedding, ttl_seconds=self.cache_ttl_seconds)

        return embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for batch (more efficient)."""
        if not texts:
            return []

        valid_texts = [t for t in texts if t and t.strip()]
        if not valid_texts:
            raise ValueError("No valid texts to embed")

        try:
            return await self.provider.embed_batch(valid_texts)
        except QuotaExceeded:
            raise
        except Exception as e:
            raise EmbeddingFailure(f"Embedding provider failed: {e}") from e

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions


class EmbeddingServicePlugin(EmbeddingServicePluginBase):
    """Default plugin for embedding service."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return EmbeddingService(
            v=v,
            provider=self.get_extension(EXT_EMBEDDING_PROVIDER, v),
            cache=self.get_extension(EXT_CACHE_SERVICE, v),
            cache_ttl_seconds=v.environ(TIEREDMEMORY_EMBEDDING_CACHE_TTL,
                                        default=DEFAULT_TIEREDMEMORY_EMBEDDING_CACHE_TTL, type_fn=int),
        )
