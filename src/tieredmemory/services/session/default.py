"""
Default session context service over the ephemeral cache.

Cache keys:
    session:<user_id>:<conversation_id>          SessionContext, short-term TTL
    summary:<user_id>:<conversation_id>:<split>  working summary, working TTL
"""
from logging import Logger
from typing import Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables

from ...config import (
    TIEREDMEMORY_SHORT_TERM_TURNS, DEFAULT_TIEREDMEMORY_SHORT_TERM_TURNS,
    TIEREDMEMORY_SHORT_TERM_TTL_SECONDS, DEFAULT_TIEREDMEMORY_SHORT_TERM_TTL_SECONDS,
    TIEREDMEMORY_WORKING_TURNS, DEFAULT_TIEREDMEMORY_WORKING_TURNS,
    TIEREDMEMORY_WORKING_TTL_SECONDS, DEFAULT_TIEREDMEMORY_WORKING_TTL_SECONDS,
    TIEREDMEMORY_SUMMARIZE_THRESHOLD, DEFAULT_TIEREDMEMORY_SUMMARIZE_THRESHOLD,
)
from ...models import Conversation, ConversationTurn, SessionContext, TurnRole
from ...utils import generate_id, utc_now
from ..cache import CacheService
from ..storage import StorageBackend
from ..summarization import SummarizationService
from .base import (
    SessionContextService, SessionServicePluginBase,
    EXT_STORAGE_BACKEND, EXT_CACHE_SERVICE, EXT_SUMMARIZATION_SERVICE,
)


def session_key(user_id: str, conversation_id: str) -> str:
    return f"session:{user_id}:{conversation_id}"


def summary_key(user_id: str, conversation_id: str, split: int) -> str:
    return f"summary:{user_id}:{conversation_id}:{split}"


class DefaultSessionContextService(SessionContextService):

    def __init__(
            self,
            v: Variables = None,
            storage: StorageBackend = None,
            cache: CacheService = None,
            summarizer: SummarizationService = None,
            short_term_turns: int = DEFAULT_TIEREDMEMORY_SHORT_TERM_TURNS,
            short_term_ttl_seconds: float = DEFAULT_TIEREDMEMORY_SHORT_TERM_TTL_SECONDS,
            working_turns: int = DEFAULT_TIEREDMEMORY_WORKING_TURNS,
            working_ttl_seconds: float = DEFAULT_TIEREDMEMORY_WORKING_TTL_SECONDS,
            summarize_threshold: int = DEFAULT_TIEREDMEMORY_SUMMARIZE_THRESHOLD,
    ):
        self.storage = storage
        self.cache = cache
        self.summarizer = summarizer
        self.short_term_turns = short_term_turns
        self.short_term_ttl_seconds = short_term_ttl_seconds
        self.working_turns = working_turns
        self.working_ttl_seconds = working_ttl_seconds
        self.summarize_threshold = summarize_threshold
        self._lookups = 0
        self._hits = 0
        self.logger = get_logger(v, name=self.__class__.__name__)

    @property
    def stats(self) -> dict:
        return {'lookups': self._lookups, 'hits': self._hits}

    async def _working_summary(self, conversation: Conversation) -> tuple[Optional[str], int]:
        """Summary of the working window preceding the short-term turns, and the split point."""
        if conversation.turn_count <= self.summarize_threshold:
            return None, 0

        split = conversation.turn_count - self.short_term_turns
        key = summary_key(conversation.user_id, conversation.id, split)
        summary = await self.cache.get(key)
        if summary:
            return summary, split

        window = await self.storage.get_turns(conversation.user_id, conversation.id,
                                              last=self.short_term_turns + self.working_turns)
        older = window[:max(0, len(window) - self.short_term_turns)]
        try:
            summary = await self.summarizer.summarize(older)
        except Exception as e:
            self.logger.warning("Summarization failed for conversation %s: %s", conversation.id, e)
            summary = None

        if not summary:
            return None, 0
        await self.cache.set(key, summary, ttl_seconds=self.working_ttl_seconds)
        return summary, split

    async def _build(self, conversation: Conversation) -> SessionContext:
        recent = await self.storage.get_turns(conversation.user_id, conversation.id, last=self.short_term_turns)
        summary, summarized_through = await self._working_summary(conversation)
        context = SessionContext(
            user_id=conversation.user_id,
            conversation_id=conversation.id,
            recent_turns=recent,
            summary=summary,
            summarized_through=summarized_through,
            turn_count=conversation.turn_count,
            fingerprint=conversation.fingerprint,
            built_at=utc_now(),
        )
        await self.cache.set(session_key(conversation.user_id, conversation.id), context.model_dump(mode='json'),
                             ttl_seconds=self.short_term_ttl_seconds)
        return context

    async def get_context(self, user_id: str, conversation_id: str) -> SessionContext:
        conversation = await self.storage.get_conversation(user_id, conversation_id)
        if conversation is None:
            return SessionContext(user_id=user_id, conversation_id=conversation_id)

        self._lookups += 1
        cached = await self.cache.get(session_key(user_id, conversation_id))
        if cached:
            context = SessionContext.model_validate(cached)
            if context.fingerprint == conversation.fingerprint:
                self._hits += 1
                return context
            self.logger.debug("Session context for %s is stale (%s != %s)", conversation_id, context.fingerprint,
                              conversation.fingerprint)

        return await self._build(conversation)

    async def record_turn(self, user_id: str, conversation_id: str, role: TurnRole, content: str,
                          turn_id: Optional[str] = None) -> ConversationTurn:
        turn = ConversationTurn(
            id=turn_id or generate_id('turn'),
            user_id=user_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
        )
        conversation = await self.storage.append_turn(turn)
        await self._build(conversation)
        return turn

    async def invalidate(self, user_id: str, conversation_id: Optional[str] = None) -> int:
        if conversation_id is not None:
            removed = int(await self.cache.delete(session_key(user_id, conversation_id)))
            return removed + await self.cache.clear_prefix(f"summary:{user_id}:{conversation_id}:")
        removed = await self.cache.clear_prefix(f"session:{user_id}:")
        return removed + await self.cache.clear_prefix(f"summary:{user_id}:")


class DefaultSessionContextServicePlugin(SessionServicePluginBase):
    PROVIDER_NAME = 'default'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return DefaultSessionContextService(
            v=v,
            storage=self.get_extension(EXT_STORAGE_BACKEND, v),
            cache=self.get_extension(EXT_CACHE_SERVICE, v),
            summarizer=self.get_extension(EXT_SUMMARIZATION_SERVICE, v),
            short_term_turns=v.environ(TIEREDMEMORY_SHORT_TERM_TURNS, default=DEFAULT_TIEREDMEMORY_SHORT_TERM_TURNS,
                                       type_fn=int),
            short_term_ttl_seconds=v.environ(TIEREDMEMORY_SHORT_TERM_TTL_SECONDS,
                                             default=DEFAULT_TIEREDMEMORY_SHORT_TERM_TTL_SECONDS, type_fn=float),
            working_turns=v.environ(TIEREDMEMORY_WORKING_TURNS, default=DEFAULT_TIEREDMEMORY_WORKING_TURNS,
                                    type_fn=int),
            working_ttl_seconds=v.environ(TIEREDMEMORY_WORKING_TTL_SECONDS,
                                          default=DEFAULT_TIEREDMEMORY_WORKING_TTL_SECONDS, type_fn=float),
            summarize_threshold=v.environ(TIEREDMEMORY_SUMMARIZE_THRESHOLD,
                                          default=DEFAULT_TIEREDMEMORY_SUMMARIZE_THRESHOLD, type_fn=int),
        )
