"""Consolidation Service - Base interface and plugin."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_CONSOLIDATION_SERVICE, DEFAULT_TIEREDMEMORY_CONSOLIDATION_SERVICE
from ...models import MemoryEntry, MemoryKind, Namespace, Privacy
from ..tasks import CancellationToken
from .._constants import (
    EXT_CONSOLIDATION_SERVICE,
    EXT_STORAGE_BACKEND,
    EXT_VECTOR_INDEX,
    EXT_EMBEDDING_SERVICE,
    EXT_EXTRACTION_SERVICE,
    EXT_DEDUPLICATION_SERVICE,
    EXT_PRIVACY_SERVICE,
    EXT_PROFILE_SERVICE,
    EXT_LOCK_SERVICE,
)


@dataclass
class ConsolidationResult:
    """Outcome of consolidating one conversation (or a batch of them)."""
    created_count: int = 0
    merged_count: int = 0
    contradicted_count: int = 0
    rejected_count: int = 0
    failed_count: int = 0
    unchanged_count: int = 0  # source turns already recorded by an earlier pass
    conversations_processed: int = 0
    conversations_skipped: int = 0  # locked, failed or cancelled; retried on the next run

    def add(self, other: 'ConsolidationResult') -> None:
        self.created_count += other.created_count
        self.merged_count += other.merged_count
        self.contradicted_count += other.contradicted_count
        self.rejected_count += other.rejected_count
        self.failed_count += other.failed_count
        self.unchanged_count += other.unchanged_count
        self.conversations_processed += other.conversations_processed
        self.conversations_skipped += other.conversations_skipped

    def to_dict(self) -> dict:
        return asdict(self)


class ConsolidationService(ABC):
    """Moves information from raw conversation turns into durable long-term memories."""

    @abstractmethod
    async def consolidate(self, user_id: str, conversation_id: str) -> ConsolidationResult:
        """
        Extract, deduplicate, validate and store memories from one conversation.

        Re-running on the same conversation does not grow the entry count.

        Raises:
            LockUnavailable: another worker is consolidating or decaying this user
        """
        pass

    @abstractmethod
    async def consolidate_pending(self, batch_size: Optional[int] = None,
                                  cancellation: Optional[CancellationToken] = None,
                                  now: Optional[datetime] = None) -> ConsolidationResult:
        """Consolidate idle, not yet consolidated conversations (oldest first)."""
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
        """
        Store a user-stated memory through the same dedup/validation/dual-write path.

        Raises:
            InvalidMemoryContent: rejected by privacy validation
            EmbeddingFailure: the vector write failed after retries (nothing is stored)
        """
        pass

    @property
    @abstractmethod
    def stats(self) -> dict:
        """Cumulative counters since start."""
        pass


# noinspection PyAbstractClass
class ConsolidationServicePluginBase(Plugin):
    """Base plugin for consolidation service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_CONSOLIDATION_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_CONSOLIDATION_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_CONSOLIDATION_SERVICE, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_CONSOLIDATION_SERVICE, DEFAULT_TIEREDMEMORY_CONSOLIDATION_SERVICE)

    def get_dependencies(self, v: Variables):
        return (
            EXT_STORAGE_BACKEND,
            EXT_VECTOR_INDEX,
            EXT_EMBEDDING_SERVICE,
            EXT_EXTRACTION_SERVICE,
            EXT_DEDUPLICATION_SERVICE,
            EXT_PRIVACY_SERVICE,
            EXT_PROFILE_SERVICE,
            EXT_LOCK_SERVICE,
        )
