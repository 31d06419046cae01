"""
Unit tests for the memory engine facade.

The engine is assembled from in-memory components; individual collaborators are
swapped for failing or slow stand-ins to exercise degraded retrieval.
"""
import asyncio

import pytest

from tieredmemory.exceptions import EmbeddingFailure, LockUnavailable
from tieredmemory.models import MemoryStatus, MemoryTier, RetrievalState, TurnRole
from tieredmemory.services.cache.lru import LRUCacheService
from tieredmemory.services.consolidation.default import DefaultConsolidationService
from tieredmemory.services.context.default import LONG_TERM_HEADER, PROFILE_HEADER, BudgetContextComposer
from tieredmemory.services.decay.default import DefaultDecayService
from tieredmemory.services.deduplication.default import TokenOverlapDeduplicationService
from tieredmemory.services.embedding.mock import MockEmbeddingProvider
from tieredmemory.services.embedding.service_default import EmbeddingService
from tieredmemory.services.engine.default import DefaultMemoryEngine
from tieredmemory.services.extraction.default import RuleBasedExtractionService
from tieredmemory.services.lock import user_lock_key
from tieredmemory.services.lock.in_memory import InMemoryLockService
from tieredmemory.services.privacy.default import DefaultPrivacyPolicy
from tieredmemory.services.profile.default import DefaultProfileService
from tieredmemory.services.ranking.default import WeightedRelevanceRanker
from tieredmemory.services.session.default import DefaultSessionContextService
from tieredmemory.services.storage.in_memory import MemoryStorageBackend
from tieredmemory.services.summarization.heuristic import HeuristicSummarizationService
from tieredmemory.services.vector import user_namespace
from tieredmemory.services.vector.in_memory import InMemoryVectorIndex


class DownVectorIndex(InMemoryVectorIndex):
    async def search(self, namespace, vector, top_k=10, where=None):
        raise ConnectionError("vector index unreachable")

    async def health_check(self) -> bool:
        return False


class FailingEmbeddingService(EmbeddingService):
    async def embed(self, text: str) -> list[float]:
        raise EmbeddingFailure("embedding provider unavailable")


class SlowSessionService(DefaultSessionContextService):
    async def get_context(self, user_id, conversation_id):
        await asyncio.sleep(1.0)
        return await super().get_context(user_id, conversation_id)


class BrokenSessionService(DefaultSessionContextService):
    async def get_context(self, user_id, conversation_id):
        raise RuntimeError("cache cluster down")


class BrokenProfileService(DefaultProfileService):
    async def get_profile(self, user_id, create=True):
        raise RuntimeError("profile store down")


def build_engine(**options) -> DefaultMemoryEngine:
    storage = MemoryStorageBackend()
    vector_index = InMemoryVectorIndex()
    cache = LRUCacheService(maxsize=256)
    embedding = EmbeddingService(provider=MockEmbeddingProvider())
    extraction = RuleBasedExtractionService()
    privacy = DefaultPrivacyPolicy()
    profile = DefaultProfileService(storage=storage, extraction=extraction)
    lock = InMemoryLockService()
    return DefaultMemoryEngine(
        storage=storage,
        vector_index=vector_index,
        cache=cache,
        embedding_service=embedding,
        ranker=WeightedRelevanceRanker(),
        privacy=privacy,
        profile_service=profile,
        session_service=DefaultSessionContextService(storage=storage, cache=cache,
                                                     summarizer=HeuristicSummarizationService()),
        composer=BudgetContextComposer(),
        consolidation_service=DefaultConsolidationService(
            storage=storage, vector_index=vector_index, embedding=embedding, extraction=extraction,
            deduplication=TokenOverlapDeduplicationService(), privacy=privacy, profile=profile, lock=lock,
        ),
        decay_service=DefaultDecayService(storage=storage, vector_index=vector_index, lock=lock),
        lock=lock,
        **options,
    )


@pytest.fixture
def engine():
    return build_engine()


async def _seed(engine, user_id="u1", conversation_id="c1"):
    await engine.record_turn(user_id, conversation_id, TurnRole.USER, "Which database fits a small web app?")
    await engine.record_turn(user_id, conversation_id, TurnRole.ASSISTANT, "It depends on your workload.")
    return await engine.remember(user_id, "I use PostgreSQL for every project")


class TestRetrieve:

    async def test_all_tiers(self, engine):
        entry = await _seed(engine)

        result = await engine.retrieve("u1", "c1", "Should I pick a database?")

        metadata = result.metadata
        assert metadata.final_state == RetrievalState.DONE
        assert metadata.states[0] == RetrievalState.IDLE
        assert not metadata.degraded
        assert metadata.failed_tiers == []
        assert metadata.memory_ids == [entry.id]
        assert LONG_TERM_HEADER in result.formatted_context
        assert "I use PostgreSQL for every project" in result.formatted_context
        assert "user: Which database fits a small web app?" in result.formatted_context
        assert metadata.estimated_tokens <= 2000
        assert set(metadata.tier_latencies_ms) == {t.value for t in MemoryTier}

    async def test_result_cache_and_invalidation(self, engine):
        await _seed(engine)

        first = await engine.retrieve("u1", "c1", "Should I pick a database?")
        second = await engine.retrieve("u1", "c1", "Should I pick a database?")
        assert not first.metadata.cached
        assert second.metadata.cached
        assert second.formatted_context == first.formatted_context

        await engine.record_turn("u1", "c1", TurnRole.USER, "Actually I need a queue too")
        third = await engine.retrieve("u1", "c1", "Should I pick a database?")
        assert not third.metadata.cached
        assert "Actually I need a queue too" in third.formatted_context

    async def test_included_memories_are_marked_accessed(self, engine):
        entry = await _seed(engine)

        await engine.retrieve("u1", "c1", "Should I pick a database?")

        stored = await engine.storage.get_entry("u1", entry.id)
        assert stored.importance.factors.access_count == 1

    async def test_access_marking_keeps_concurrent_archive(self, engine, monkeypatch):
        entry = await _seed(engine)
        get_entries = engine.storage.get_entries

        async def read_then_archive(user_id, entry_ids):
            entries = await get_entries(user_id, entry_ids)
            stored = await engine.storage.get_entry(user_id, entry.id)
            stored.set_status(MemoryStatus.ARCHIVED, reason="decay")
            await engine.storage.update_entry(stored)
            return entries

        monkeypatch.setattr(engine.storage, "get_entries", read_then_archive)
        result = await engine.retrieve("u1", "c1", "Should I pick a database?")

        assert result.metadata.memory_ids == [entry.id]
        stored = await engine.storage.get_entry("u1", entry.id)
        assert stored.status == MemoryStatus.ARCHIVED
        assert stored.access_count == 1

    async def test_forgotten_memories_do_not_crowd_out_active(self, engine, make_entry):
        entry = await _seed(engine)
        engine.long_term_candidates = 3
        namespace = user_namespace("u1")
        for i in range(6):
            stale = await engine.storage.create_entry(make_entry(
                user_id="u1", content=f"I use PostgreSQL for every project number {i}", age_days=120))
            await engine.vector_index.upsert(namespace, stale.id, await engine.embedding.embed(stale.content))

        decayed = await engine.decay_service.decay_user("u1")
        result = await engine.retrieve("u1", "c1", "Should I pick a database?")

        assert decayed.forgotten_count == 6
        assert await engine.vector_index.count(namespace) == 1
        assert result.metadata.memory_ids == [entry.id]

    async def test_near_duplicates_across_conversations(self, engine):
        await engine.record_turn("u1", "c1", TurnRole.USER, "I like Python")
        await engine.record_turn("u1", "c2", TurnRole.USER, "I really like Python")
        await engine.consolidate("u1", "c1")
        await engine.consolidate("u1", "c2")

        entries = await engine.storage.list_entries("u1")
        assert [e.content for e in entries] == ["I like Python"]
        assert entries[0].access_count == 1

        result = await engine.retrieve("u1", "c3", "Which Python web framework should I use?")

        assert result.metadata.memory_ids == [entries[0].id]
        assert (await engine.storage.get_entry("u1", entries[0].id)).access_count == 2

    async def test_empty_user(self, engine):
        result = await engine.retrieve("nobody", "c1", "hello")
        assert result.formatted_context == ""
        assert result.metadata.final_state == RetrievalState.DONE
        assert not result.metadata.degraded

    async def test_vector_index_down(self, engine):
        await _seed(engine)
        await engine.record_turn("u1", "c1", TurnRole.USER, "My name is Alex Smith")
        await engine.consolidate("u1", "c1")
        engine.vector_index = DownVectorIndex()

        result = await engine.retrieve("u1", "c1", "Should I pick a database?")
        again = await engine.retrieve("u1", "c1", "Should I pick a database?")

        assert result.metadata.degraded
        assert result.metadata.failed_tiers == [MemoryTier.LONG_TERM]
        assert result.metadata.final_state == RetrievalState.DONE
        assert "user: Which database fits a small web app?" in result.formatted_context
        assert PROFILE_HEADER in result.formatted_context
        assert "Name: Alex Smith" in result.formatted_context
        assert LONG_TERM_HEADER not in result.formatted_context
        assert not again.metadata.cached

    async def test_embedding_failure_falls_back_to_importance(self, engine):
        entry = await _seed(engine)
        engine.embedding = FailingEmbeddingService(provider=MockEmbeddingProvider())

        result = await engine.retrieve("u1", "c1", "Should I pick a database?")

        assert result.metadata.embedding_failed
        assert result.metadata.degraded
        assert result.metadata.failed_tiers == []
        assert result.metadata.memory_ids == [entry.id]

    async def test_slow_tier_times_out(self, engine):
        await _seed(engine)
        engine.tier_timeout_ms = 50
        engine.session_service = SlowSessionService(storage=engine.storage, cache=engine.cache,
                                                    summarizer=HeuristicSummarizationService())

        result = await engine.retrieve("u1", "c1", "Should I pick a database?")

        assert result.metadata.failed_tiers == [MemoryTier.SHORT_TERM, MemoryTier.WORKING]
        assert not result.metadata.deadline_exceeded
        assert result.metadata.degraded
        assert "I use PostgreSQL for every project" in result.formatted_context

    async def test_deadline_exceeded(self, engine):
        await _seed(engine)
        engine.tier_timeout_ms = 5000
        engine.session_service = SlowSessionService(storage=engine.storage, cache=engine.cache,
                                                    summarizer=HeuristicSummarizationService())

        result = await engine.retrieve("u1", "c1", "Should I pick a database?", deadline_ms=100)

        assert result.metadata.deadline_exceeded
        assert MemoryTier.SHORT_TERM in result.metadata.failed_tiers
        assert result.metadata.final_state == RetrievalState.DONE

    async def test_all_tiers_failed(self, engine):
        await _seed(engine)
        engine.vector_index = DownVectorIndex()
        engine.session_service = BrokenSessionService(storage=engine.storage, cache=engine.cache,
                                                      summarizer=HeuristicSummarizationService())
        engine.profile_service = BrokenProfileService(storage=engine.storage)

        result = await engine.retrieve("u1", "c1", "Should I pick a database?")

        assert result.formatted_context == ""
        assert result.metadata.final_state == RetrievalState.ERROR
        assert result.metadata.error == "All memory tiers failed"
        assert len(result.metadata.failed_tiers) == 4
        assert engine.stats['retrieval_errors'] == 1

    async def test_small_budget(self, engine):
        await _seed(engine)
        result = await engine.retrieve("u1", "c1", "Should I pick a database?", max_tokens=20)
        assert result.metadata.estimated_tokens <= 20


class TestDataSubjectRequests:

    async def test_export(self, engine):
        entry = await _seed(engine)

        exported = await engine.export_user_memories("u1")

        assert exported['user_id'] == "u1"
        assert [m['id'] for m in exported['memories']] == [entry.id]
        assert exported['profile']['user_id'] == "u1"

    async def test_erase(self, engine):
        await _seed(engine)
        await engine.retrieve("u1", "c1", "Should I pick a database?")

        counts = await engine.erase_user_memories("u1")

        assert counts['entries'] == 1
        assert counts['vectors'] == 1
        assert counts['turns'] == 2
        assert await engine.storage.list_entries("u1") == []
        assert await engine.vector_index.count(user_namespace("u1")) == 0
        result = await engine.retrieve("u1", "c1", "Should I pick a database?")
        assert result.formatted_context == ""

    async def test_erase_waits_for_lock(self, engine):
        await _seed(engine)
        await engine.lock.acquire(user_lock_key("u1"))

        with pytest.raises(LockUnavailable):
            await engine.erase_user_memories("u1")
        assert len(await engine.storage.list_entries("u1")) == 1


class TestHealth:

    async def test_healthy(self, engine):
        await _seed(engine)
        await engine.retrieve("u1", "c1", "Should I pick a database?")

        health = await engine.health()

        assert health['status'] == "healthy"
        assert health['retrievals'] == 1
        assert health['consolidations'] == 1
        assert health['storage'] == "ok"
        assert MemoryTier.LONG_TERM.value in health['tier_latencies']

    async def test_vector_index_unavailable(self, engine):
        engine.vector_index = DownVectorIndex()

        health = await engine.health()

        assert health['status'] == "issues_detected"
        assert health['vector_index'] == "unavailable"
        assert [i['type'] for i in health['issues']] == ["vector_index_unavailable"]
        assert "left out of context" in health['issues'][0]['message']
