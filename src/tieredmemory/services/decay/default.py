"""Default decay service implementation."""
import asyncio
from datetime import datetime, timedelta
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_DECAY_BATCH_SIZE, DEFAULT_TIEREDMEMORY_DECAY_BATCH_SIZE,
    TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS, DEFAULT_TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS,
    TIEREDMEMORY_JOB_CONCURRENCY, DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY,
)
from ...exceptions import LockUnavailable
from ...models import AuditAction, MemoryStatus
from ...utils import utc_now
from ..lock import LockService, user_lock_key
from ..storage import StorageBackend
from ..tasks import CancellationToken
from ..vector import VectorIndex, user_namespace
from .base import (
    CleanupResult, DecayResult, DecayService, DecayServicePluginBase,
    EXT_STORAGE_BACKEND, EXT_VECTOR_INDEX, EXT_LOCK_SERVICE,
    calculate_importance_score, compute_recency_factor, should_forget,
)

SCORE_EPSILON = 1e-6


class DefaultDecayService(DecayService):
    """Default decay implementation using storage backend directly."""

    def __init__(self, storage: StorageBackend, vector_index: VectorIndex, lock: LockService, v: Variables = None,
                 batch_size: int = DEFAULT_TIEREDMEMORY_DECAY_BATCH_SIZE,
                 archive_after_days: int = DEFAULT_TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS,
                 concurrency: int = DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY):
        self._storage = storage
        self._vector_index = vector_index
        self._lock = lock
        self.batch_size = batch_size
        self.archive_after_days = archive_after_days
        self.concurrency = max(1, concurrency)
        self._totals = DecayResult()
        self.logger = get_logger(v, name=self.__class__.__name__)

    @property
    def stats(self) -> dict:
        return {
            'forgetting_events': self._totals.forgotten_count,
            'processed': self._totals.processed,
            'updated': self._totals.updated_count,
        }

    async def _drop_vectors(self, user_id: str, entry_ids: list[str]) -> None:
        """Remove vectors of entries that left the active set. Storage stays authoritative if this fails."""
        if not entry_ids:
            return
        try:
            await self._vector_index.delete(user_namespace(user_id), entry_ids)
        except Exception as e:
            self.logger.warning("Could not remove %d vector(s) for user %s: %s", len(entry_ids), user_id, e)

    async def decay_user(self, user_id: str, now: Optional[datetime] = None) -> DecayResult:
        now = now or utc_now()
        result = DecayResult(users_processed=1)

        async with self._lock.hold(user_lock_key(user_id)):
            entries = await self._storage.list_entries(user_id, statuses=[MemoryStatus.ACTIVE])
            result.processed = len(entries)
            archived: list[str] = []

            for entry in entries:
                factors = entry.importance.factors
                old_recency, old_score = factors.recency, entry.importance.score
                recency = compute_recency_factor(entry, now)
                changed = abs(recency - old_recency) > SCORE_EPSILON
                factors.recency = recency

                score = calculate_importance_score(entry)
                changed = changed or abs(score - old_score) > SCORE_EPSILON
                entry.importance.score = score

                if should_forget(entry, now):
                    entry.set_status(MemoryStatus.ARCHIVED, reason='decay', at=now)
                    archived.append(entry.id)
                    result.forgotten_count += 1
                    changed = True
                elif changed:
                    entry.record_audit(AuditAction.UPDATED, actor='decay', at=now, details={
                        'reason': 'decay',
                        'recency': [round(old_recency, 4), round(recency, 4)],
                        'score': [round(old_score, 4), round(score, 4)],
                    })

                if changed:
                    await self._storage.update_entry(entry)
                    result.updated_count += 1

            await self._drop_vectors(user_id, archived)

        self._totals.add(result)
        self.logger.debug(
            "Decay pass for user %s: %d processed, %d updated, %d forgotten",
            user_id, result.processed, result.updated_count, result.forgotten_count,
        )
        return result

    async def decay_all_users(self, batch_size: Optional[int] = None,
                              cancellation: Optional[CancellationToken] = None,
                              now: Optional[datetime] = None) -> DecayResult:
        now = now or utc_now()
        batch_size = batch_size or self.batch_size
        total = DecayResult()
        user_ids = await self._storage.list_user_ids()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def decay_one(uid: str) -> DecayResult:
            async with semaphore:
                if cancellation is not None and cancellation.cancelled:
                    return DecayResult(users_skipped=1)
                try:
                    return await self.decay_user(uid, now)
                except LockUnavailable:
                    self.logger.info("Skipping decay for user %s: lock held by another worker", uid)
                except Exception as e:
                    self.logger.error("Decay failed for user %s: %s", uid, e, exc_info=True)
                return DecayResult(users_skipped=1)

        for start in range(0, len(user_ids), batch_size):
            if cancellation is not None and cancellation.cancelled:
                total.users_skipped += len(user_ids) - start
                self.logger.info("Decay cancelled with %d user(s) remaining", len(user_ids) - start)
                break
            batch = user_ids[start:start + batch_size]
            for result in await asyncio.gather(*(decay_one(uid) for uid in batch)):
                total.add(result)

        self.logger.info(
            "Decay all users: %d users, %d processed, %d updated, %d forgotten, %d skipped",
            total.users_processed, total.processed, total.updated_count, total.forgotten_count, total.users_skipped,
        )
        return total

    async def _cleanup_user(self, user_id: str, now: datetime) -> CleanupResult:
        result = CleanupResult(users_processed=1)
        async with self._lock.hold(user_lock_key(user_id)):
            stale = await self._storage.list_entries(
                user_id,
                statuses=[MemoryStatus.ACTIVE],
                accessed_before=now - timedelta(days=self.archive_after_days),
                pinned=False,
            )
            for entry in stale:
                entry.set_status(MemoryStatus.ARCHIVED, reason='cleanup: not accessed', at=now)
                await self._storage.update_entry(entry)
                result.archived_count += 1
            await self._drop_vectors(user_id, [e.id for e in stale])

            expired = await self._storage.list_entries(user_id, statuses=[MemoryStatus.ARCHIVED], expires_before=now)
            if expired:
                ids = [e.id for e in expired]
                await self._vector_index.delete(user_namespace(user_id), ids)
                for entry_id in ids:
                    if await self._storage.delete_entry(user_id, entry_id):
                        result.deleted_count += 1
        return result

    async def cleanup(self, now: Optional[datetime] = None,
                      cancellation: Optional[CancellationToken] = None) -> CleanupResult:
        now = now or utc_now()
        total = CleanupResult()
        for user_id in await self._storage.list_user_ids():
            if cancellation is not None and cancellation.cancelled:
                self.logger.info("Cleanup cancelled")
                break
            try:
                result = await self._cleanup_user(user_id, now)
            except LockUnavailable:
                self.logger.info("Skipping cleanup for user %s: lock held by another worker", user_id)
                continue
            except Exception as e:
                self.logger.error("Cleanup failed for user %s: %s", user_id, e, exc_info=True)
                continue
            total.archived_count += result.archived_count
            total.deleted_count += result.deleted_count
            total.users_processed += 1

        self.logger.info("Cleanup: %d users, %d archived, %d deleted",
                         total.users_processed, total.archived_count, total.deleted_count)
        return total


class DefaultDecayServicePlugin(DecayServicePluginBase):
    """Plugin that creates the default decay service."""
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> DecayService:
        return DefaultDecayService(
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            vector_index=self.get_extension(EXT_VECTOR_INDEX, v),
            lock=self.get_extension(EXT_LOCK_SERVICE, v),
            v=v,
            batch_size=v.environ(TIEREDMEMORY_DECAY_BATCH_SIZE, default=DEFAULT_TIEREDMEMORY_DECAY_BATCH_SIZE,
                                 type_fn=int),
            archive_after_days=v.environ(TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS,
                                         default=DEFAULT_TIEREDMEMORY_CLEANUP_ARCHIVE_AFTER_DAYS, type_fn=int),
            concurrency=v.environ(TIEREDMEMORY_JOB_CONCURRENCY, default=DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY,
                                  type_fn=int),
        )
