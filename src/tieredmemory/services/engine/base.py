"""
Memory Engine - the single entry point callers use.

Operations:
- retrieve: fetch all tiers concurrently, rank long-term memories, compose a budgeted context
- record_turn: append to the conversation log and refresh the session context
- remember: store an explicit memory
- consolidate / consolidate_pending: move conversations into long-term memory
- decay / decay_all_users / cleanup: maintenance
- export_user_memories / erase_user_memories: data subject requests
- health: aggregated counters and issues
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_ENGINE_SERVICE, DEFAULT_TIEREDMEMORY_ENGINE_SERVICE
from ...models import (
    ConversationTurn, ConversationType, MemoryEntry, MemoryKind, Namespace, Privacy, RequestContext,
    RetrievalResult, TurnRole,
)
from ..consolidation import ConsolidationResult
from ..decay import CleanupResult, DecayResult
from ..tasks import CancellationToken
from .._constants import (
    EXT_MEMORY_ENGINE,
    EXT_STORAGE_BACKEND,
    EXT_VECTOR_INDEX,
    EXT_CACHE_SERVICE,
    EXT_EMBEDDING_SERVICE,
    EXT_RANKING_SERVICE,
    EXT_PRIVACY_SERVICE,
    EXT_PROFILE_SERVICE,
    EXT_SESSION_SERVICE,
    EXT_CONTEXT_SERVICE,
    EXT_CONSOLIDATION_SERVICE,
    EXT_DECAY_SERVICE,
    EXT_LOCK_SERVICE,
)


class MemoryEngine(ABC):

    @abstractmethod
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
        """
        Build the memory context for the next model call.

        Never raises for tier failures: failed tiers are reported in the
        metadata, and only a failure of every tier ends in the ERROR state
        (with an empty context).
        """
        pass

    @abstractmethod
    async def record_turn(self, user_id: str, conversation_id: str, role: TurnRole, content: str,
                          turn_id: Optional[str] = None) -> ConversationTurn:
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    async def consolidate(self, user_id: str, conversation_id: str) -> ConsolidationResult:
        pass

    @abstractmethod
    async def consolidate_pending(self, batch_size: Optional[int] = None,
                                  cancellation: Optional[CancellationToken] = None) -> ConsolidationResult:
        pass

    @abstractmethod
    async def decay(self, user_id: str) -> DecayResult:
        pass

    @abstractmethod
    async def decay_all_users(self, batch_size: Optional[int] = None,
                              cancellation: Optional[CancellationToken] = None) -> DecayResult:
        pass

    @abstractmethod
    async def cleanup(self, cancellation: Optional[CancellationToken] = None) -> CleanupResult:
        pass

    @abstractmethod
    async def export_user_memories(self, user_id: str) -> dict[str, Any]:
        """Every entry (with history and audit trail), the profile and the export time, JSON-serializable."""
        pass

    @abstractmethod
    async def erase_user_memories(self, user_id: str) -> dict[str, int]:
        """Delete entries, vectors, conversations and cached session state; clear the profile."""
        pass

    @abstractmethod
    async def health(self) -> dict[str, Any]:
        pass


# noinspection PyAbstractClass
class MemoryEnginePluginBase(Plugin):
    """Base plugin for the memory engine."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_MEMORY_ENGINE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_MEMORY_ENGINE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_ENGINE_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_ENGINE_SERVICE, DEFAULT_TIEREDMEMORY_ENGINE_SERVICE)

    def get_dependencies(self, v: Variables):
        return (
            EXT_STORAGE_BACKEND,
            EXT_VECTOR_INDEX,
            EXT_CACHE_SERVICE,
            EXT_EMBEDDING_SERVICE,
            EXT_RANKING_SERVICE,
            EXT_PRIVACY_SERVICE,
            EXT_PROFILE_SERVICE,
            EXT_SESSION_SERVICE,
            EXT_CONTEXT_SERVICE,
            EXT_CONSOLIDATION_SERVICE,
            EXT_DECAY_SERVICE,
            EXT_LOCK_SERVICE,
        )
