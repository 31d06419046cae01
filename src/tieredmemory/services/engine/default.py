"""Default memory engine facade."""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from logging import Logger
from typing import Any, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_MAX_CONTEXT_TOKENS, DEFAULT_TIEREDMEMORY_MAX_CONTEXT_TOKENS,
    TIEREDMEMORY_TIER_TIMEOUT_MS, DEFAULT_TIEREDMEMORY_TIER_TIMEOUT_MS,
    TIEREDMEMORY_RETRIEVAL_DEADLINE_MS, DEFAULT_TIEREDMEMORY_RETRIEVAL_DEADLINE_MS,
    TIEREDMEMORY_LONG_TERM_CANDIDATES, DEFAULT_TIEREDMEMORY_LONG_TERM_CANDIDATES,
    TIEREDMEMORY_LONG_TERM_RESULTS, DEFAULT_TIEREDMEMORY_LONG_TERM_RESULTS,
    TIEREDMEMORY_MIN_SIMILARITY, DEFAULT_TIEREDMEMORY_MIN_SIMILARITY,
    TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS, DEFAULT_TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS,
)
from ...exceptions import EmbeddingFailure, QuotaExceeded
from ...models import (
    ConversationTurn, ConversationType, MemoryEntry, MemoryKind, MemoryStatus, MemoryTier, Namespace, Privacy,
    RequestContext, RetrievalMetadata, RetrievalResult, RetrievalState, TurnRole, UserProfile,
)
from ...utils import digest_of, ensure_utc, utc_now, utc_now_iso
from ..cache import CacheService, EXT_CACHE_SERVICE
from ..consolidation import ConsolidationResult, ConsolidationService, EXT_CONSOLIDATION_SERVICE
from ..context import ContextComposer, EXT_CONTEXT_SERVICE
from ..decay import CleanupResult, DecayResult, DecayService, EXT_DECAY_SERVICE
from ..embedding import EmbeddingService, EXT_EMBEDDING_SERVICE
from ..lock import LockService, EXT_LOCK_SERVICE, user_lock_key
from ..privacy import PrivacyPolicy, EXT_PRIVACY_SERVICE
from ..profile import ProfileService, EXT_PROFILE_SERVICE
from ..ranking import RankCandidate, RankingService, EXT_RANKING_SERVICE
from ..session import SessionContextService, EXT_SESSION_SERVICE
from ..storage import EntryOrder, StorageBackend, EXT_STORAGE_BACKEND
from ..tasks import CancellationToken
from ..vector import VectorIndex, EXT_VECTOR_INDEX, user_namespace
from .base import MemoryEngine, MemoryEnginePluginBase

ALL_TIERS = (MemoryTier.SHORT_TERM, MemoryTier.WORKING, MemoryTier.LONG_TERM, MemoryTier.PROFILE)

# health issue thresholds
MIN_LOOKUPS_FOR_HIT_RATE = 100
LOW_CACHE_HIT_RATE = 0.5
HIGH_FORGETTING_RATE = 0.5


def retrieval_prefix(user_id: str, conversation_id: Optional[str] = None) -> str:
    if conversation_id is None:
        return f"retrieval:{user_id}:"
    return f"retrieval:{user_id}:{conversation_id}:"


@dataclass
class _LongTermFetch:
    candidates: list[RankCandidate] = field(default_factory=list)
    query_embedding: Optional[list[float]] = None
    embedding_failed: bool = False


class DefaultMemoryEngine(MemoryEngine):
    """
    Memory engine coordinating the four tiers.

    This service coordinates between:
    - Session context service (short-term turns and working summary)
    - Profile service (profile tier)
    - Embedding service, vector index and structured storage (long-term tier)
    - Ranking service and context composer
    - Consolidation and decay services (background maintenance)
    """

    def __init__(
            self,
            storage: StorageBackend,
            vector_index: VectorIndex,
            cache: CacheService,
            embedding_service: EmbeddingService,
            ranker: RankingService,
            privacy: PrivacyPolicy,
            profile_service: ProfileService,
            session_service: SessionContextService,
            composer: ContextComposer,
            consolidation_service: ConsolidationService,
            decay_service: DecayService,
            lock: LockService,
            v: Variables = None,
            max_context_tokens: int = DEFAULT_TIEREDMEMORY_MAX_CONTEXT_TOKENS,
            tier_timeout_ms: float = DEFAULT_TIEREDMEMORY_TIER_TIMEOUT_MS,
            deadline_ms: float = DEFAULT_TIEREDMEMORY_RETRIEVAL_DEADLINE_MS,
            long_term_candidates: int = DEFAULT_TIEREDMEMORY_LONG_TERM_CANDIDATES,
            long_term_results: int = DEFAULT_TIEREDMEMORY_LONG_TERM_RESULTS,
            min_similarity: float = DEFAULT_TIEREDMEMORY_MIN_SIMILARITY,
            result_cache_ttl_seconds: float = DEFAULT_TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS,
    ):
        self.storage = storage
        self.vector_index = vector_index
        self.cache = cache
        self.embedding = embedding_service
        self.ranker = ranker
        self.privacy = privacy
        self.profile_service = profile_service
        self.session_service = session_service
        self.composer = composer
        self.consolidation_service = consolidation_service
        self.decay_service = decay_service
        self.lock = lock

        self.max_context_tokens = max_context_tokens
        self.tier_timeout_ms = tier_timeout_ms
        self.deadline_ms = deadline_ms
        self.long_term_candidates = long_term_candidates
        self.long_term_results = long_term_results
        self.min_similarity = min_similarity
        self.result_cache_ttl_seconds = result_cache_ttl_seconds

        self._retrievals = 0
        self._retrieval_errors = 0
        self._degraded_retrievals = 0
        self._result_lookups = 0
        self._result_hits = 0
        self._latency_totals: dict[str, float] = {}
        self._latency_counts: dict[str, int] = {}

        self.logger = get_logger(v, name=self.__class__.__name__)
        self.logger.info(
            "Initialized DefaultMemoryEngine (max_tokens=%d, tier_timeout=%sms, deadline=%sms)",
            max_context_tokens, tier_timeout_ms, deadline_ms,
        )

    # ========== Retrieval ==========

    @staticmethod
    def _result_key(user_id: str, conversation_id: str, current_message: str, intent: Optional[str],
                    max_tokens: int, conversation_type: ConversationType, ctx: RequestContext) -> str:
        digest = digest_of(current_message, intent, max_tokens, conversation_type.value, ctx.model_dump(mode='json'))
        return retrieval_prefix(user_id, conversation_id) + digest

    async def _fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        return await self.profile_service.get_profile(user_id, create=False)

    async def _fetch_long_term(self, user_id: str, current_message: str, ctx: RequestContext) -> _LongTermFetch:
        fetch = _LongTermFetch()
        now = utc_now()
        try:
            fetch.query_embedding = await self.embedding.embed(current_message)
        except (EmbeddingFailure, QuotaExceeded, ValueError) as e:
            # recency/frequency ranking over the most important entries
            self.logger.warning("Embedding failed for user %s, falling back to importance order: %s", user_id, e)
            fetch.embedding_failed = True

        similarities: dict[str, float] = {}
        if fetch.query_embedding is not None:
            matches = await self.vector_index.query(
                user_namespace(user_id), fetch.query_embedding,
                top_k=self.long_term_candidates, min_similarity=self.min_similarity,
            )
            similarities = {m.id: m.similarity for m in matches}
            entries = await self.storage.get_entries(user_id, list(similarities))
        else:
            entries = await self.storage.list_entries(
                user_id, statuses=[MemoryStatus.ACTIVE], order_by=EntryOrder.IMPORTANCE,
                limit=self.long_term_candidates,
            )

        entries = [
            e for e in entries
            if e.status == MemoryStatus.ACTIVE
            and (e.temporal.expires_at is None or ensure_utc(e.temporal.expires_at) > now)
        ]
        entries = self.privacy.filter(entries, ctx)
        fetch.candidates = [RankCandidate(entry=e, similarity=similarities.get(e.id)) for e in entries]
        return fetch

    async def _timed(self, tier: str, coro, latencies: dict[str, float]):
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(coro, timeout=self.tier_timeout_ms / 1000.0)
        finally:
            latencies[tier] = round((time.perf_counter() - started) * 1000.0, 3)

    def _record_latencies(self, latencies: dict[str, float]) -> None:
        for tier, ms in latencies.items():
            self._latency_totals[tier] = self._latency_totals.get(tier, 0.0) + ms
            self._latency_counts[tier] = self._latency_counts.get(tier, 0) + 1

    async def _mark_accessed(self, user_id: str, memory_ids: list[str]) -> None:
        if not memory_ids:
            return
        try:
            await self.storage.record_access(user_id, memory_ids, at=utc_now(), actor='retrieval')
        except Exception as e:
            self.logger.warning("Failed to mark %d memories accessed for user %s: %s", len(memory_ids), user_id, e)

    async def retrieve(
            self,
            user_id: str,
            conversation_id: str,
            current_message: str,
            intent: Optional[str] = None,
            max_tokens: Optional[int] = None,
            deadline_ms: Optional[float] = None,
            conversation_type: ConversationType = ConversationType.STANDARD,
            request_context: Optional[RequestContext] = None,
    ) -> RetrievalResult:
        started = time.perf_counter()
        self._retrievals += 1
        max_tokens = self.max_context_tokens if max_tokens is None else max_tokens
        deadline_ms = self.deadline_ms if deadline_ms is None else deadline_ms
        ctx = request_context or RequestContext(user_id=user_id)
        if ctx.user_id is None:
            ctx = ctx.model_copy(update={'user_id': user_id})

        metadata = RetrievalMetadata(states=[RetrievalState.IDLE], conversation_type=conversation_type)

        cache_key = self._result_key(user_id, conversation_id, current_message, intent, max_tokens,
                                     conversation_type, ctx)
        self._result_lookups += 1
        try:
            cached = await self.cache.get(cache_key)
        except Exception as e:
            self.logger.warning("Result cache read failed: %s", e)
            cached = None
        if cached:
            self._result_hits += 1
            result = RetrievalResult.model_validate(cached)
            result.metadata.cached = True
            result.metadata.elapsed_ms = round((time.perf_counter() - started) * 1000.0, 3)
            return result

        try:
            # FETCHING_TIERS
            metadata.states.append(RetrievalState.FETCHING_TIERS)
            latencies: dict[str, float] = {}
            tasks = {
                'session': asyncio.create_task(
                    self._timed('session', self.session_service.get_context(user_id, conversation_id), latencies)),
                MemoryTier.PROFILE.value: asyncio.create_task(
                    self._timed(MemoryTier.PROFILE.value, self._fetch_profile(user_id), latencies)),
                MemoryTier.LONG_TERM.value: asyncio.create_task(
                    self._timed(MemoryTier.LONG_TERM.value, self._fetch_long_term(user_id, current_message, ctx),
                                latencies)),
            }
            done, pending = await asyncio.wait(tasks.values(), timeout=max(0.0, deadline_ms) / 1000.0)
            if pending:
                metadata.deadline_exceeded = True
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

            results: dict[str, Any] = {}
            failed: set[MemoryTier] = set()
            for name, task in tasks.items():
                tiers = (MemoryTier.SHORT_TERM, MemoryTier.WORKING) if name == 'session' else (MemoryTier(name),)
                if task in pending or task.cancelled():
                    self.logger.warning("Tier %s missed the %sms deadline for user %s", name, deadline_ms, user_id)
                    failed.update(tiers)
                elif task.exception() is not None:
                    error = task.exception()
                    if isinstance(error, asyncio.TimeoutError):
                        self.logger.warning("Tier %s timed out after %sms for user %s", name, self.tier_timeout_ms,
                                            user_id)
                    else:
                        self.logger.warning("Tier %s failed for user %s: %s", name, user_id, error)
                    failed.update(tiers)
                else:
                    results[name] = task.result()

            session_latency = latencies.pop('session', None)
            if session_latency is not None:
                latencies[MemoryTier.SHORT_TERM.value] = session_latency
                latencies[MemoryTier.WORKING.value] = session_latency
            metadata.tier_latencies_ms = latencies
            self._record_latencies(latencies)
            metadata.failed_tiers = [t for t in ALL_TIERS if t in failed]

            if len(failed) == len(ALL_TIERS):
                metadata.states.append(RetrievalState.ERROR)
                metadata.degraded = True
                metadata.error = "All memory tiers failed"
                self._retrieval_errors += 1
                self.logger.error("All memory tiers failed for user %s conversation %s", user_id, conversation_id)
                return self._finish(RetrievalResult(metadata=metadata), started)

            session = results.get('session')
            long_term: Optional[_LongTermFetch] = results.get(MemoryTier.LONG_TERM.value)
            metadata.embedding_failed = bool(long_term and long_term.embedding_failed)
            metadata.degraded = bool(failed) or metadata.embedding_failed or metadata.deadline_exceeded

            # RANKING
            metadata.states.append(RetrievalState.RANKING)
            ranked = []
            if long_term is not None and long_term.candidates:
                ranked = self.ranker.rank(long_term.candidates, query_embedding=long_term.query_embedding,
                                          intent=intent)[:self.long_term_results]

            # COMPOSING
            metadata.states.append(RetrievalState.COMPOSING)
            composed = self.composer.compose(
                profile=results.get(MemoryTier.PROFILE.value),
                short_term=session.recent_turns if session is not None else [],
                working=session.summary if session is not None else None,
                long_term=ranked,
                max_tokens=max_tokens,
                conversation_type=conversation_type,
            )
            metadata.estimated_tokens = composed.estimated_tokens
            metadata.truncated = composed.truncated
            metadata.memory_ids = list(composed.memory_ids)
            metadata.states.append(RetrievalState.DONE)
            result = self._finish(RetrievalResult(formatted_context=composed.text, metadata=metadata), started)
        except Exception as e:
            metadata.states.append(RetrievalState.ERROR)
            metadata.degraded = True
            metadata.error = str(e)
            self._retrieval_errors += 1
            self.logger.error("Retrieval failed for user %s conversation %s: %s", user_id, conversation_id, e,
                              exc_info=True)
            return self._finish(RetrievalResult(metadata=metadata), started)

        await self._mark_accessed(user_id, result.metadata.memory_ids)

        if not metadata.degraded:
            try:
                await self.cache.set(cache_key, result.model_dump(mode='json'), ttl_seconds=self.result_cache_ttl_seconds)
            except Exception as e:
                self.logger.warning("Result cache write failed: %s", e)
        return result

    def _finish(self, result: RetrievalResult, started: float) -> RetrievalResult:
        result.metadata.elapsed_ms = round((time.perf_counter() - started) * 1000.0, 3)
        if result.metadata.degraded:
            self._degraded_retrievals += 1
        self.logger.debug("Retrieval finished in %.1fms (states=%s, failed=%s)", result.metadata.elapsed_ms,
                          [s.value for s in result.metadata.states], [t.value for t in result.metadata.failed_tiers])
        return result

    async def _invalidate_results(self, user_id: Optional[str] = None, conversation_id: Optional[str] = None) -> int:
        if user_id is None:
            return await self.cache.clear_prefix("retrieval:")
        return await self.cache.clear_prefix(retrieval_prefix(user_id, conversation_id))

    # ========== Writes ==========

    async def record_turn(self, user_id: str, conversation_id: str, role: TurnRole, content: str,
                          turn_id: Optional[str] = None) -> ConversationTurn:
        turn = await self.session_service.record_turn(user_id, conversation_id, role, content, turn_id=turn_id)
        await self._invalidate_results(user_id, conversation_id)
        return turn

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
        entry = await self.consolidation_service.remember(
            user_id, content, kind=kind, namespace=namespace, pinned=pinned, privacy=privacy, expires_at=expires_at,
        )
        await self._invalidate_results(user_id)
        return entry

    # ========== Maintenance ==========

    async def consolidate(self, user_id: str, conversation_id: str) -> ConsolidationResult:
        result = await self.consolidation_service.consolidate(user_id, conversation_id)
        await self._invalidate_results(user_id)
        return result

    async def consolidate_pending(self, batch_size: Optional[int] = None,
                                  cancellation: Optional[CancellationToken] = None) -> ConsolidationResult:
        result = await self.consolidation_service.consolidate_pending(batch_size=batch_size, cancellation=cancellation)
        await self._invalidate_results()
        return result

    async def decay(self, user_id: str) -> DecayResult:
        result = await self.decay_service.decay_user(user_id)
        await self._invalidate_results(user_id)
        return result

    async def decay_all_users(self, batch_size: Optional[int] = None,
                              cancellation: Optional[CancellationToken] = None) -> DecayResult:
        result = await self.decay_service.decay_all_users(batch_size=batch_size, cancellation=cancellation)
        await self._invalidate_results()
        return result

    async def cleanup(self, cancellation: Optional[CancellationToken] = None) -> CleanupResult:
        result = await self.decay_service.cleanup(cancellation=cancellation)
        await self._invalidate_results()
        return result

    # ========== Data subject requests ==========

    async def export_user_memories(self, user_id: str) -> dict[str, Any]:
        entries = await self.storage.list_entries(user_id, order_by=EntryOrder.CREATED)
        profile = await self.profile_service.get_profile(user_id, create=False)
        self.logger.info("Exported %d memories for user %s", len(entries), user_id)
        return {
            'user_id': user_id,
            'exported_at': utc_now_iso(),
            'memories': [e.model_dump(mode='json') for e in entries],
            'profile': profile.model_dump(mode='json') if profile is not None else None,
        }

    async def erase_user_memories(self, user_id: str) -> dict[str, int]:
        async with self.lock.hold(user_lock_key(user_id)):
            vectors = await self.vector_index.delete_namespace(user_namespace(user_id))
            entries = await self.storage.delete_user_entries(user_id)
            turns = await self.storage.delete_user_conversations(user_id)
            cached = await self.session_service.invalidate(user_id)
            cached += await self._invalidate_results(user_id)
            await self.profile_service.clear_profile(user_id)

        counts = {'entries': entries, 'vectors': vectors, 'turns': turns, 'cache_keys': cached}
        self.logger.info("Erased memories for user %s: %s", user_id, counts)
        return counts

    # ========== Health ==========

    @property
    def stats(self) -> dict[str, Any]:
        return {
            'retrievals': self._retrievals,
            'retrieval_errors': self._retrieval_errors,
            'degraded_retrievals': self._degraded_retrievals,
            'result_cache_lookups': self._result_lookups,
            'result_cache_hits': self._result_hits,
        }

    async def health(self) -> dict[str, Any]:
        try:
            storage_ok = await self.storage.health_check()
        except Exception as e:
            self.logger.warning("Storage health check failed: %s", e)
            storage_ok = False
        try:
            vector_ok = await self.vector_index.health_check()
        except Exception as e:
            self.logger.warning("Vector index health check failed: %s", e)
            vector_ok = False

        session_stats = self.session_service.stats
        lookups = session_stats.get('lookups', 0) + self._result_lookups
        hits = session_stats.get('hits', 0) + self._result_hits
        cache_hit_rate = (hits / lookups) if lookups else 0.0

        consolidation_stats = self.consolidation_service.stats
        consolidations = consolidation_stats.get('created_count', 0) + consolidation_stats.get('merged_count', 0)
        forgetting_events = self.decay_service.stats.get('forgetting_events', 0)
        forgotten_rate = (forgetting_events / consolidations) if consolidations else 0.0

        issues = []
        if lookups > MIN_LOOKUPS_FOR_HIT_RATE and cache_hit_rate < LOW_CACHE_HIT_RATE:
            issues.append({'type': 'low_cache_hit_rate', 'severity': 'warning', 'value': cache_hit_rate,
                           'message': 'Cache hit rate below 50%'})
        if consolidations and forgotten_rate > HIGH_FORGETTING_RATE:
            issues.append({'type': 'high_forgetting_rate', 'severity': 'info', 'value': forgotten_rate,
                           'message': 'More than 50% of consolidated memories are being forgotten'})
        if not vector_ok:
            issues.append({'type': 'vector_index_unavailable', 'severity': 'warning', 'value': None,
                           'message': 'Vector index unreachable; long-term memories are left out of context '
                                      'until it recovers'})

        if not storage_ok:
            status = 'unhealthy'
        elif issues:
            status = 'issues_detected'
        else:
            status = 'healthy'

        return {
            'status': status,
            'tier_latencies': {
                tier: round(total / self._latency_counts[tier], 3) for tier, total in self._latency_totals.items()
            },
            'cache_hit_rate': cache_hit_rate,
            'cache_lookups': lookups,
            'forgotten_rate': forgotten_rate,
            'retrievals': self._retrievals,
            'degraded_retrievals': self._degraded_retrievals,
            'consolidations': consolidations,
            'forgetting_events': forgetting_events,
            'issues': issues,
            'storage': 'ok' if storage_ok else 'unavailable',
            'vector_index': 'ok' if vector_ok else 'unavailable',
        }


class DefaultMemoryEnginePlugin(MemoryEnginePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return DefaultMemoryEngine(
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            vector_index=self.get_extension(EXT_VECTOR_INDEX, v),
            cache=self.get_extension(EXT_CACHE_SERVICE, v),
            embedding_service=self.get_extension(EXT_EMBEDDING_SERVICE, v),
            ranker=self.get_extension(EXT_RANKING_SERVICE, v),
            privacy=self.get_extension(EXT_PRIVACY_SERVICE, v),
            profile_service=self.get_extension(EXT_PROFILE_SERVICE, v),
            session_service=self.get_extension(EXT_SESSION_SERVICE, v),
            composer=self.get_extension(EXT_CONTEXT_SERVICE, v),
            consolidation_service=self.get_extension(EXT_CONSOLIDATION_SERVICE, v),
            decay_service=self.get_extension(EXT_DECAY_SERVICE, v),
            lock=self.get_extension(EXT_LOCK_SERVICE, v),
            v=v,
            max_context_tokens=v.environ(TIEREDMEMORY_MAX_CONTEXT_TOKENS,
                                         default=DEFAULT_TIEREDMEMORY_MAX_CONTEXT_TOKENS, type_fn=int),
            tier_timeout_ms=v.environ(TIEREDMEMORY_TIER_TIMEOUT_MS, default=DEFAULT_TIEREDMEMORY_TIER_TIMEOUT_MS,
                                      type_fn=float),
            deadline_ms=v.environ(TIEREDMEMORY_RETRIEVAL_DEADLINE_MS,
                                  default=DEFAULT_TIEREDMEMORY_RETRIEVAL_DEADLINE_MS, type_fn=float),
            long_term_candidates=v.environ(TIEREDMEMORY_LONG_TERM_CANDIDATES,
                                           default=DEFAULT_TIEREDMEMORY_LONG_TERM_CANDIDATES, type_fn=int),
            long_term_results=v.environ(TIEREDMEMORY_LONG_TERM_RESULTS,
                                        default=DEFAULT_TIEREDMEMORY_LONG_TERM_RESULTS, type_fn=int),
            min_similarity=v.environ(TIEREDMEMORY_MIN_SIMILARITY, default=DEFAULT_TIEREDMEMORY_MIN_SIMILARITY,
                                     type_fn=float),
            result_cache_ttl_seconds=v.environ(TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS,
                                               default=DEFAULT_TIEREDMEMORY_RESULT_CACHE_TTL_SECONDS, type_fn=float),
        )
