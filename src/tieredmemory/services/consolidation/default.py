"""
Default consolidation pipeline.

extract -> deduplicate -> enrich -> validate -> dual write -> profile update,
holding the per-user lock for the whole pass.
"""
import asyncio
from collections import defaultdict
from datetime import datetime, timedelta
from logging import Logger
from typing import Optional

from pydantic import ValidationError
from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS, DEFAULT_TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS,
    TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE, DEFAULT_TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE,
    TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS, DEFAULT_TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS,
    TIEREDMEMORY_JOB_CONCURRENCY, DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY,
)
from ...exceptions import InvalidMemoryContent, LockUnavailable
from ...models import (
    AuditAction, ExtractionMethod, Importance, ImportanceFactors, MemoryCandidate, MemoryEntry, MemoryKind,
    MemoryStatus, Namespace, Privacy, Provenance, SemanticInfo, Temporal,
)
from ...utils import generate_id, retry_async, utc_now
from ..deduplication import DedupAction, DeduplicationService
from ..embedding import EmbeddingService
from ..extraction import ExtractionService
from ..lock import LockService, user_lock_key
from ..privacy import PrivacyPolicy
from ..profile import ProfileService
from ..storage import StorageBackend
from ..tasks import CancellationToken
from ..vector import VectorIndex, user_namespace
from .base import (
    ConsolidationResult, ConsolidationService, ConsolidationServicePluginBase,
    EXT_STORAGE_BACKEND, EXT_VECTOR_INDEX, EXT_EMBEDDING_SERVICE, EXT_EXTRACTION_SERVICE,
    EXT_DEDUPLICATION_SERVICE, EXT_PRIVACY_SERVICE, EXT_PROFILE_SERVICE, EXT_LOCK_SERVICE,
)

EXPLICIT_CONFIDENCE = 0.95
MERGE_CONFIDENCE_BUMP = 0.05


def enrich_importance(confidence: float, novelty: float, valence: float) -> float:
    """Initial importance: 0.5 * confidence + 0.3 * novelty + 0.2 * |valence|."""
    score = 0.5 * confidence + 0.3 * novelty + 0.2 * abs(valence)
    return min(1.0, max(0.0, score))


class DefaultConsolidationService(ConsolidationService):

    retry_base_delay: float = 0.1

    def __init__(
            self,
            v: Variables = None,
            storage: StorageBackend = None,
            vector_index: VectorIndex = None,
            embedding: EmbeddingService = None,
            extraction: ExtractionService = None,
            deduplication: DeduplicationService = None,
            privacy: PrivacyPolicy = None,
            profile: ProfileService = None,
            lock: LockService = None,
            delay_hours: float = DEFAULT_TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS,
            batch_size: int = DEFAULT_TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE,
            vector_write_attempts: int = DEFAULT_TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS,
            concurrency: int = DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY,
    ):
        self.storage = storage
        self.vector_index = vector_index
        self.embedding = embedding
        self.extraction = extraction
        self.deduplication = deduplication
        self.privacy = privacy
        self.profile = profile
        self.lock = lock
        self.delay_hours = delay_hours
        self.batch_size = batch_size
        self.vector_write_attempts = vector_write_attempts
        self.concurrency = max(1, concurrency)
        self._totals = ConsolidationResult()
        self._runs = 0
        self.logger = get_logger(v, name=self.__class__.__name__)

    @property
    def stats(self) -> dict:
        return {'runs': self._runs, **self._totals.to_dict()}

    # ========== Pipeline steps ==========

    def _build_entry(self, user_id: str, candidate: MemoryCandidate, conversation_id: Optional[str],
                     novelty: float, now: datetime) -> MemoryEntry:
        entry_id = generate_id('mem')
        try:
            entry = MemoryEntry(
                id=entry_id,
                user_id=user_id,
                content=candidate.content,
                kind=candidate.kind,
                namespace=candidate.namespace,
                temporal=Temporal(created_at=now, updated_at=now, last_accessed_at=now,
                                  expires_at=candidate.expires_at),
                importance=Importance(
                    score=enrich_importance(candidate.confidence, novelty, candidate.emotional_valence),
                    factors=ImportanceFactors(user_marked=candidate.pinned,
                                              emotional_valence=candidate.emotional_valence),
                ),
                provenance=Provenance(
                    conversation_id=conversation_id,
                    message_ids=list(candidate.message_ids),
                    extraction_method=candidate.extraction_method,
                    rule=candidate.rule,
                    confidence=candidate.confidence,
                ),
                semantic=SemanticInfo(embedding_id=entry_id, keywords=candidate.keywords),
                privacy=candidate.privacy,
            )
        except ValidationError as e:
            raise InvalidMemoryContent(f"Invalid memory candidate: {e.errors()[0].get('msg', e)}") from e
        entry.record_audit(AuditAction.CREATED, details={'conversation_id': conversation_id, 'rule': candidate.rule},
                           at=now)
        return entry

    async def _write_vector(self, entry: MemoryEntry) -> None:
        vector = await self.embedding.embed(entry.content)
        await self.vector_index.upsert(
            user_namespace(entry.user_id), entry.id, vector,
            metadata={'kind': entry.kind.value, 'category': entry.namespace.category.value},
        )

    async def _dual_write(self, entry: MemoryEntry) -> None:
        """Structured record first, then the vector; the structured record is removed if the vector write fails."""
        await self.storage.create_entry(entry)
        try:
            await retry_async(
                lambda: self._write_vector(entry),
                attempts=self.vector_write_attempts,
                base_delay=self.retry_base_delay,
                logger=self.logger,
                description=f"vector write for {entry.id}",
            )
        except Exception:
            await self.storage.delete_entry(entry.user_id, entry.id)
            self.logger.warning("Rolled back memory %s after vector write failure", entry.id)
            raise

    async def _drop_vector(self, entry: MemoryEntry) -> None:
        """Inactive entries leave the vector index; a failure here only costs retrieval a filtered-out hit."""
        try:
            await self.vector_index.delete(user_namespace(entry.user_id), [entry.id])
        except Exception as e:
            self.logger.warning("Could not remove vector for memory %s: %s", entry.id, e)

    async def _merge(self, target: MemoryEntry, candidate: MemoryCandidate, conversation_id: Optional[str],
                     similarity: float, now: datetime) -> MemoryEntry:
        target.importance.factors.access_count += 1
        target.provenance.confidence = min(1.0, target.provenance.confidence + MERGE_CONFIDENCE_BUMP)
        for message_id in candidate.message_ids:
            if message_id not in target.provenance.message_ids:
                target.provenance.message_ids.append(message_id)
        target.semantic.keywords = sorted(
            set(target.semantic.keywords) | {k.strip().lower() for k in candidate.keywords if k and k.strip()}
        )
        if candidate.pinned:
            target.importance.factors.user_marked = True
        target.revise(reason='consolidation', at=now)
        target.record_audit(AuditAction.MERGED, at=now, details={
            'conversation_id': conversation_id,
            'similarity': round(similarity, 4),
            'candidate': candidate.content,
        })
        await self.storage.update_entry(target)
        return target

    async def _apply_candidate(self, user_id: str, candidate: MemoryCandidate, existing: list[MemoryEntry],
                               conversation_id: Optional[str], now: datetime) -> tuple[DedupAction, MemoryEntry]:
        """
        Run one candidate through validation, dedup and storage.

        Raises:
            InvalidMemoryContent: rejected by validation
            Exception: the dual write failed (nothing was stored)
        """
        self.privacy.validate(candidate)
        decision = self.deduplication.classify(candidate.content, existing)

        if decision.action == DedupAction.MERGE:
            merged = await self._merge(decision.target, candidate, conversation_id, decision.similarity, now)
            self.logger.debug("Merged candidate into memory %s (similarity %.2f)", merged.id, decision.similarity)
            return decision.action, merged

        entry = self._build_entry(user_id, candidate, conversation_id, 1.0 - decision.best_similarity, now)
        if decision.action == DedupAction.CONTRADICT:
            entry.semantic.related_memory_ids.append(decision.target.id)
        await self._dual_write(entry)
        existing.append(entry)

        if decision.action == DedupAction.CONTRADICT:
            old = decision.target
            old.importance.factors.contradiction_count += 1
            old.semantic.related_memory_ids.append(entry.id)
            old.set_status(MemoryStatus.CONTRADICTED, reason=f"contradicted by {entry.id}", at=now)
            await self.storage.update_entry(old)
            existing.remove(old)
            await self._drop_vector(old)
            self.logger.info("Memory %s contradicted by new memory %s", old.id, entry.id)

        return decision.action, entry

    async def _ingest(self, user_id: str, candidates: list[MemoryCandidate],
                      conversation_id: Optional[str]) -> tuple[ConsolidationResult, list[MemoryEntry]]:
        result = ConsolidationResult()
        touched: list[MemoryEntry] = []
        if not candidates:
            return result, touched

        now = utc_now()
        stored = await self.storage.list_entries(user_id)
        existing = [e for e in stored if e.status == MemoryStatus.ACTIVE]
        # turns already folded into any entry, including contradicted and archived ones
        recorded = {message_id for e in stored for message_id in e.provenance.message_ids}

        for candidate in candidates:
            if candidate.message_ids and recorded.issuperset(candidate.message_ids):
                result.unchanged_count += 1
                continue
            try:
                action, entry = await self._apply_candidate(user_id, candidate, existing, conversation_id, now)
            except InvalidMemoryContent as e:
                result.rejected_count += 1
                self.logger.info("Rejected memory candidate (%s): %s", candidate.rule, e.message)
                continue
            except Exception as e:
                result.failed_count += 1
                self.logger.error("Failed to store memory candidate (%s): %s", candidate.rule, e)
                continue

            touched.append(entry)
            if action == DedupAction.MERGE:
                result.merged_count += 1
            elif action == DedupAction.CONTRADICT:
                result.contradicted_count += 1
                result.created_count += 1
            else:
                result.created_count += 1

        if touched:
            stats = await self.storage.entry_statistics(user_id)
            await self.profile.fold_entries(user_id, touched,
                                            memory_count=stats.get('by_status', {}).get(MemoryStatus.ACTIVE.value, 0))
        return result, touched

    # ========== Operations ==========

    async def consolidate(self, user_id: str, conversation_id: str) -> ConsolidationResult:
        async with self.lock.hold(user_lock_key(user_id)):
            turns = await self.storage.get_turns(user_id, conversation_id)
            candidates = self.extraction.extract(turns)
            result, _ = await self._ingest(user_id, candidates, conversation_id)
            await self.storage.mark_conversation_consolidated(user_id, conversation_id, utc_now())

        result.conversations_processed = 1
        self._runs += 1
        self._totals.add(result)
        self.logger.info(
            "Consolidated conversation %s for user %s: %d created, %d merged, %d contradicted, %d rejected, %d failed, "
            "%d unchanged",
            conversation_id, user_id, result.created_count, result.merged_count, result.contradicted_count,
            result.rejected_count, result.failed_count, result.unchanged_count,
        )
        return result

    async def _consolidate_user(self, user_id: str, conversation_ids: list[str], semaphore: asyncio.Semaphore,
                                cancellation: Optional[CancellationToken]) -> ConsolidationResult:
        total = ConsolidationResult()
        async with semaphore:
            for conversation_id in conversation_ids:
                if cancellation is not None and cancellation.cancelled:
                    total.conversations_skipped += 1
                    continue
                try:
                    total.add(await self.consolidate(user_id, conversation_id))
                except LockUnavailable:
                    self.logger.info("Skipping user %s: lock held by another worker", user_id)
                    total.conversations_skipped += len(conversation_ids) - conversation_ids.index(conversation_id)
                    break
                except Exception as e:
                    total.conversations_skipped += 1
                    self.logger.error("Consolidation of conversation %s for user %s failed: %s",
                                      conversation_id, user_id, e, exc_info=True)
        return total

    async def consolidate_pending(self, batch_size: Optional[int] = None,
                                  cancellation: Optional[CancellationToken] = None,
                                  now: Optional[datetime] = None) -> ConsolidationResult:
        now = now or utc_now()
        idle_before = now - timedelta(hours=self.delay_hours)
        conversations = await self.storage.list_pending_conversations(idle_before, limit=batch_size or self.batch_size)

        by_user: dict[str, list[str]] = defaultdict(list)
        for conversation in conversations:
            by_user[conversation.user_id].append(conversation.id)

        # users in parallel, each user's conversations in order
        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(
            self._consolidate_user(user_id, ids, semaphore, cancellation) for user_id, ids in by_user.items()
        ))

        total = ConsolidationResult()
        for result in results:
            total.add(result)
        self.logger.info(
            "Consolidation run: %d conversations processed, %d skipped, %d created, %d merged, %d failed",
            total.conversations_processed, total.conversations_skipped, total.created_count, total.merged_count,
            total.failed_count,
        )
        return total

    async def remember(
            self,
            user_id: str,
            content: str,
            kind: MemoryKind = MemoryKind.FACT,
            namespace: Optional[Namespace] = None,
            pinned: bool = False,
            privacy: Optional[Privacy] = None,
            expires_at: Optional[datetime] = None,
    ) -> MemoryEntry:
        if not content or not content.strip():
            raise InvalidMemoryContent("Memory content cannot be empty")
        candidate = MemoryCandidate(
            content=content.strip(),
            kind=kind,
            namespace=namespace or Namespace(),
            confidence=EXPLICIT_CONFIDENCE,
            keywords=[e.value for e in self.extraction.extract_entities(content)],
            extraction_method=ExtractionMethod.EXPLICIT,
            privacy=privacy or Privacy(),
            pinned=pinned,
            expires_at=expires_at,
        )

        async with self.lock.hold(user_lock_key(user_id)):
            now = utc_now()
            existing = await self.storage.list_entries(user_id, statuses=[MemoryStatus.ACTIVE])
            action, entry = await self._apply_candidate(user_id, candidate, existing, None, now)
            await self.profile.fold_entries(user_id, [entry])

        self.logger.info("Remembered memory %s for user %s (%s)", entry.id, user_id, action.value)
        return entry


class DefaultConsolidationServicePlugin(ConsolidationServicePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return DefaultConsolidationService(
            v=v,
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            vector_index=self.get_extension(EXT_VECTOR_INDEX, v),
            embedding=self.get_extension(EXT_EMBEDDING_SERVICE, v),
            extraction=self.get_extension(EXT_EXTRACTION_SERVICE, v),
            deduplication=self.get_extension(EXT_DEDUPLICATION_SERVICE, v),
            privacy=self.get_extension(EXT_PRIVACY_SERVICE, v),
            profile=self.get_extension(EXT_PROFILE_SERVICE, v),
            lock=self.get_extension(EXT_LOCK_SERVICE, v),
            delay_hours=v.environ(TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS,
                                  default=DEFAULT_TIEREDMEMORY_CONSOLIDATION_DELAY_HOURS, type_fn=float),
            batch_size=v.environ(TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE,
                                 default=DEFAULT_TIEREDMEMORY_CONSOLIDATION_BATCH_SIZE, type_fn=int),
            vector_write_attempts=v.environ(TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS,
                                            default=DEFAULT_TIEREDMEMORY_VECTOR_WRITE_ATTEMPTS, type_fn=int),
            concurrency=v.environ(TIEREDMEMORY_JOB_CONCURRENCY, default=DEFAULT_TIEREDMEMORY_JOB_CONCURRENCY,
                                  type_fn=int),
        )
