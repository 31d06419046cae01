"""Abstract structured storage interface (source of truth for memories, profiles and conversations)."""
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from logging import Logger
from typing import Any, Iterable, Optional

from scitrera_app_framework import get_logger
from scitrera_app_framework.api import Variables, Plugin, enabled_option_pattern

from ...config import TIEREDMEMORY_STORAGE_BACKEND, DEFAULT_TIEREDMEMORY_STORAGE_BACKEND
from ...models import (
    Conversation, ConversationTurn, MemoryCategory, MemoryEntry, MemoryKind, MemoryStatus, UserProfile,
)
from .._constants import EXT_STORAGE_BACKEND


class EntryOrder(str, Enum):
    IMPORTANCE = "importance"
    LAST_ACCESSED = "last_accessed"
    CREATED = "created"


class StorageBackend(ABC):
    """
    Abstract base class for structured storage backends.

    Every operation is partitioned by ``user_id``.
    """

    def __init__(self, v: Variables = None):
        self.logger = get_logger(v, name=self.__class__.__name__)

    # Lifecycle
    @abstractmethod
    async def connect(self) -> None:
        """Initialize storage connection."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close storage connection."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage is healthy."""
        pass

    # Memory entries
    @abstractmethod
    async def create_entry(self, entry: MemoryEntry) -> MemoryEntry:
        """Store a new memory entry."""
        pass

    @abstractmethod
    async def get_entry(self, user_id: str, entry_id: str) -> Optional[MemoryEntry]:
        pass

    @abstractmethod
    async def get_entries(self, user_id: str, entry_ids: Iterable[str]) -> list[MemoryEntry]:
        """Fetch several entries, preserving the order of ``entry_ids`` and skipping missing ones."""
        pass

    @abstractmethod
    async def update_entry(self, entry: MemoryEntry) -> MemoryEntry:
        """Replace a stored entry with ``entry``. Raises KeyError if it does not exist."""
        pass

    @abstractmethod
    async def record_access(self, user_id: str, entry_ids: Iterable[str], at: datetime,
                            actor: str = "retrieval") -> int:
        """
        Bump access count and last-accessed time in place, appending an ACCESSED audit record.

        Only the access fields change, so a concurrent status change (archive, contradiction)
        made after the entries were read is never overwritten.

        Returns:
            Number of entries updated
        """
        pass

    @abstractmethod
    async def delete_entry(self, user_id: str, entry_id: str) -> bool:
        """Hard delete. Returns True if a row was removed."""
        pass

    @abstractmethod
    async def list_entries(
            self,
            user_id: str,
            statuses: Optional[Iterable[MemoryStatus]] = None,
            kinds: Optional[Iterable[MemoryKind]] = None,
            categories: Optional[Iterable[MemoryCategory]] = None,
            accessed_before: Optional[datetime] = None,
            expires_before: Optional[datetime] = None,
            pinned: Optional[bool] = None,
            order_by: EntryOrder = EntryOrder.IMPORTANCE,
            limit: Optional[int] = None,
    ) -> list[MemoryEntry]:
        """
        Indexed entry query.

        Args:
            user_id: Owning user
            statuses: Only entries in these statuses
            kinds: Only entries of these kinds
            categories: Only entries in these namespace categories
            accessed_before: Only entries last accessed strictly before this time
            expires_before: Only entries with an expiry strictly before this time
            pinned: Filter on the user-marked flag
            order_by: Sort key (always descending)
            limit: Maximum entries to return

        Returns:
            Matching entries
        """
        pass

    @abstractmethod
    async def delete_user_entries(self, user_id: str) -> int:
        """Hard delete every entry of a user. Returns count."""
        pass

    @abstractmethod
    async def list_user_ids(self) -> list[str]:
        """Users that own at least one memory entry, sorted."""
        pass

    @abstractmethod
    async def entry_statistics(self, user_id: Optional[str] = None) -> dict[str, Any]:
        """
        Aggregate counters for health reporting.

        Returns:
            dict with ``total``, ``by_status``, ``by_kind``, ``avg_confidence``, ``avg_importance``
        """
        pass

    # Profiles
    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> UserProfile:
        pass

    # Conversations
    @abstractmethod
    async def append_turn(self, turn: ConversationTurn) -> Conversation:
        """
        Append a turn and update the conversation record.

        A new turn re-opens a consolidated conversation so it is consolidated again.
        """
        pass

    @abstractmethod
    async def get_turns(self, user_id: str, conversation_id: str, last: Optional[int] = None) -> list[ConversationTurn]:
        """Turns in chronological order; ``last`` keeps only the newest N."""
        pass

    @abstractmethod
    async def get_conversation(self, user_id: str, conversation_id: str) -> Optional[Conversation]:
        pass

    @abstractmethod
    async def list_pending_conversations(self, idle_before: datetime, limit: int = 10) -> list[Conversation]:
        """Unconsolidated conversations whose last message is older than ``idle_before``, oldest first."""
        pass

    @abstractmethod
    async def mark_conversation_consolidated(self, user_id: str, conversation_id: str, at: datetime) -> bool:
        pass

    @abstractmethod
    async def delete_user_conversations(self, user_id: str) -> int:
        """Delete all conversations and turns of a user. Returns number of turns removed."""
        pass


# noinspection PyAbstractClass
class StoragePluginBase(Plugin):
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_STORAGE_BACKEND}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_STORAGE_BACKEND

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_STORAGE_BACKEND, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_STORAGE_BACKEND, DEFAULT_TIEREDMEMORY_STORAGE_BACKEND)

    async def async_ready(self, v: Variables, logger: Logger, value: object | None) -> None:
        if isinstance(value, StorageBackend):
            try:
                await value.connect()
                logger.info("Storage backend '%s' connected successfully.", self.PROVIDER_NAME)
            except Exception as e:
                logger.error("Error connecting storage backend '%s': %s", self.PROVIDER_NAME, e)
                raise
        return

    async def async_stopping(self, v: Variables, logger: Logger, value: object | None) -> None:
        if isinstance(value, StorageBackend):
            try:
                await value.disconnect()
                logger.info("Storage backend '%s' disconnected successfully.", self.PROVIDER_NAME)
            except Exception as e:
                logger.error("Error disconnecting storage backend '%s': %s", self.PROVIDER_NAME, e)
        return
