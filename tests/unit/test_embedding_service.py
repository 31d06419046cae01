"""Unit tests for the embedding service and the mock provider."""
import pytest

from tieredmemory.exceptions import EmbeddingFailure, QuotaExceeded
from tieredmemory.services.cache.lru import LRUCacheService
from tieredmemory.services.embedding.base import EmbeddingProvider
from tieredmemory.services.embedding.mock import MockEmbeddingProvider
from tieredmemory.services.embedding.service_default import EmbeddingService
from tieredmemory.utils import cosine_similarity


class CountingProvider(MockEmbeddingProvider):

    def __init__(self):
        super().__init__(dimensions=16)
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        return await super().embed(text)


class RaisingProvider(EmbeddingProvider):

    def __init__(self, error: Exception):
        super().__init__(output_dimensions=16)
        self.error = error

    async def embed(self, text: str) -> list[float]:
        raise self.error

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        raise self.error


class TestMockEmbeddingProvider:

    async def test_deterministic_and_normalized(self):
        provider = MockEmbeddingProvider(dimensions=32)
        first = await provider.embed("I deploy with Kubernetes")
        second = await provider.embed("I deploy with Kubernetes")
        assert first == second
        assert len(first) == 32
        assert sum(x * x for x in first) == pytest.approx(1.0)

    async def test_shared_words_score_closer(self):
        provider = MockEmbeddingProvider()
        query = await provider.embed("my favourite database is PostgreSQL")
        related = await provider.embed("PostgreSQL is the database I use")
        unrelated = await provider.embed("weekend hiking trip plans")
        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)
        assert cosine_similarity(query, unrelated) >= 0.0


class TestEmbeddingService:

    async def test_cache_avoids_second_provider_call(self):
        provider = CountingProvider()
        service = EmbeddingService(provider=provider, cache=LRUCacheService(maxsize=10))

        first = await service.embed("remember this")
        second = await service.embed("remember this")

        assert first == second
        assert provider.calls == 1

    async def test_empty_text_rejected(self):
        service = EmbeddingService(provider=MockEmbeddingProvider())
        with pytest.raises(ValueError):
            await service.embed("   ")

    async def test_provider_error_wrapped(self):
        service = EmbeddingService(provider=RaisingProvider(RuntimeError("connection reset")))
        with pytest.raises(EmbeddingFailure):
            await service.embed("hello")
        with pytest.raises(EmbeddingFailure):
            await service.embed_batch(["hello"])

    async def test_quota_passes_through(self):
        service = EmbeddingService(provider=RaisingProvider(QuotaExceeded("slow down", retry_after=2.0)))
        with pytest.raises(QuotaExceeded) as exc_info:
            await service.embed("hello")
        assert exc_info.value.retry_after == 2.0
