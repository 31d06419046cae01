"""
Unit tests for DecayService.

Tests the importance formula, forgetting criteria, pinned exemption and cleanup.
"""
import math
from datetime import timedelta

import pytest

from tieredmemory.exceptions import LockUnavailable
from tieredmemory.models import AuditAction, MemoryStatus
from tieredmemory.services.decay.base import calculate_importance_score, compute_recency_factor, should_forget
from tieredmemory.services.decay.default import DefaultDecayService
from tieredmemory.services.lock import user_lock_key
from tieredmemory.services.lock.in_memory import InMemoryLockService
from tieredmemory.services.storage.in_memory import MemoryStorageBackend
from tieredmemory.services.vector import user_namespace
from tieredmemory.services.vector.in_memory import InMemoryVectorIndex


@pytest.fixture
def storage():
    return MemoryStorageBackend()


@pytest.fixture
def vectors():
    return InMemoryVectorIndex()


@pytest.fixture
def lock():
    return InMemoryLockService()


@pytest.fixture
def decay_service(storage, vectors, lock):
    return DefaultDecayService(storage=storage, vector_index=vectors, lock=lock)


class TestScoring:

    def test_recency_factor(self, make_entry, now):
        entry = make_entry(age_days=10, now=now)
        assert compute_recency_factor(entry, now) == pytest.approx(math.exp(-1.0))

    def test_importance_formula(self, make_entry):
        entry = make_entry(pinned=True, confidence=0.8)
        entry.importance.factors.recency = 1.0
        assert calculate_importance_score(entry) == pytest.approx(0.3 + 0.25 + 0.08)

    def test_importance_with_frequency_and_valence(self, make_entry):
        entry = make_entry(access_count=9, valence=-0.5, confidence=1.0)
        entry.importance.factors.recency = 0.0
        assert calculate_importance_score(entry) == pytest.approx(0.25 * 0.5 + 0.05 + 0.1)


class TestShouldForget:

    def test_recent_entry_kept(self, make_entry, now):
        assert not should_forget(make_entry(age_days=1, now=now), now)

    def test_old_and_unimportant(self, make_entry, now):
        entry = make_entry(age_days=100, accessed_days_ago=10, score=0.1, now=now)
        assert should_forget(entry, now)

    def test_old_but_important_kept(self, make_entry, now):
        entry = make_entry(age_days=100, accessed_days_ago=10, score=0.6, now=now)
        assert not should_forget(entry, now)

    def test_not_accessed(self, make_entry, now):
        entry = make_entry(age_days=70, accessed_days_ago=61, score=0.9, now=now)
        assert should_forget(entry, now)

    def test_expired(self, make_entry, now):
        entry = make_entry(age_days=2, now=now, expires_at=now - timedelta(days=1))
        assert should_forget(entry, now)

    def test_pinned_never_forgotten(self, make_entry, now):
        entry = make_entry(age_days=400, score=0.0, pinned=True, now=now, expires_at=now - timedelta(days=1))
        assert not should_forget(entry, now)


class TestDecayUser:

    async def test_archives_forgotten_entries(self, decay_service, storage, make_entry, now):
        fresh = await storage.create_entry(make_entry(user_id="u1", content="Likes tea", age_days=1, now=now))
        stale = await storage.create_entry(make_entry(user_id="u1", content="Owned a red bike", age_days=120,
                                                      now=now))
        pinned = await storage.create_entry(make_entry(user_id="u1", content="Allergic to peanuts", age_days=120,
                                                       pinned=True, now=now))

        result = await decay_service.decay_user("u1", now=now)

        assert result.processed == 3
        assert result.forgotten_count == 1
        assert (await storage.get_entry("u1", stale.id)).status == MemoryStatus.ARCHIVED
        assert (await storage.get_entry("u1", fresh.id)).status == MemoryStatus.ACTIVE
        assert (await storage.get_entry("u1", pinned.id)).status == MemoryStatus.ACTIVE
        assert decay_service.stats["forgetting_events"] == 1

    async def test_scores_recomputed_from_factors(self, decay_service, storage, make_entry, now):
        entry = await storage.create_entry(make_entry(user_id="u1", age_days=10, score=0.99, now=now))
        await decay_service.decay_user("u1", now=now)

        stored = await storage.get_entry("u1", entry.id)
        assert stored.importance.factors.recency == pytest.approx(math.exp(-1.0))
        assert stored.importance.score == pytest.approx(calculate_importance_score(stored))

    async def test_score_change_is_audited(self, decay_service, storage, make_entry, now):
        entry = await storage.create_entry(make_entry(user_id="u1", age_days=10, score=0.99, now=now))
        await decay_service.decay_user("u1", now=now)

        stored = await storage.get_entry("u1", entry.id)
        record = stored.audit[-1]
        assert record.action == AuditAction.UPDATED
        assert record.actor == "decay"
        assert record.details["reason"] == "decay"
        assert record.details["score"] == [0.99, round(stored.importance.score, 4)]

    async def test_forgotten_entries_leave_vector_index(self, decay_service, storage, vectors, make_entry, now):
        fresh = await storage.create_entry(make_entry(user_id="u1", content="Likes tea", age_days=1, now=now))
        stale = await storage.create_entry(make_entry(user_id="u1", content="Owned a red bike", age_days=120,
                                                      now=now))
        for entry in (fresh, stale):
            await vectors.upsert(user_namespace("u1"), entry.id, [1.0, 0.0])

        await decay_service.decay_user("u1", now=now)

        matches = await vectors.query(user_namespace("u1"), [1.0, 0.0], top_k=10)
        assert [m.id for m in matches] == [fresh.id]
        assert (await storage.get_entry("u1", stale.id)).audit[-1].action == AuditAction.ARCHIVED

    async def test_second_pass_writes_nothing(self, decay_service, storage, make_entry, now):
        await storage.create_entry(make_entry(user_id="u1", age_days=3, now=now))
        await decay_service.decay_user("u1", now=now)
        result = await decay_service.decay_user("u1", now=now)
        assert result.updated_count == 0

    async def test_lock_held(self, decay_service, lock):
        token = await lock.acquire(user_lock_key("u1"))
        try:
            with pytest.raises(LockUnavailable):
                await decay_service.decay_user("u1")
        finally:
            await lock.release(user_lock_key("u1"), token)

    async def test_decay_all_users_skips_locked(self, decay_service, storage, lock, make_entry, now):
        await storage.create_entry(make_entry(user_id="u1", now=now))
        await storage.create_entry(make_entry(user_id="u2", now=now))
        token = await lock.acquire(user_lock_key("u2"))

        result = await decay_service.decay_all_users(now=now)
        await lock.release(user_lock_key("u2"), token)

        assert result.users_processed == 1
        assert result.users_skipped == 1


class TestCleanup:

    async def test_archives_unused_and_deletes_expired(self, decay_service, storage, vectors, make_entry, now):
        unused = await storage.create_entry(make_entry(user_id="u1", age_days=200, accessed_days_ago=100, now=now))
        await vectors.upsert(user_namespace("u1"), unused.id, [0.0, 1.0])
        expired = make_entry(user_id="u1", age_days=10, now=now, expires_at=now - timedelta(days=5))
        expired.status = MemoryStatus.ARCHIVED
        await storage.create_entry(expired)
        await vectors.upsert(user_namespace("u1"), expired.id, [1.0, 0.0])

        result = await decay_service.cleanup(now=now)

        assert result.archived_count == 1
        assert result.deleted_count == 1
        assert (await storage.get_entry("u1", unused.id)).status == MemoryStatus.ARCHIVED
        assert await storage.get_entry("u1", expired.id) is None
        assert await vectors.count(user_namespace("u1")) == 0

    async def test_pinned_not_archived(self, decay_service, storage, make_entry, now):
        pinned = await storage.create_entry(make_entry(user_id="u1", age_days=200, accessed_days_ago=150,
                                                       pinned=True, now=now))
        await decay_service.cleanup(now=now)
        assert (await storage.get_entry("u1", pinned.id)).status == MemoryStatus.ACTIVE
