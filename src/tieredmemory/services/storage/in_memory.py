"""
In-memory storage backend for testing.

Stores deep copies so callers never share mutable state with the store.
Data is lost on service restart - use only for testing.
"""
from collections import Counter
from datetime import datetime
from logging import Logger
from typing import Any, Iterable, Optional

from scitrera_app_framework import Variables

from .base import EntryOrder, StorageBackend, StoragePluginBase
from ...models import (
    Conversation, ConversationTurn, MemoryCategory, MemoryEntry, MemoryKind, MemoryStatus, UserProfile,
)
from ...utils import ensure_utc


def _sort_key(order_by: EntryOrder):
    if order_by == EntryOrder.LAST_ACCESSED:
        return lambda e: (e.temporal.last_accessed_at, e.id)
    if order_by == EntryOrder.CREATED:
        return lambda e: (e.temporal.created_at, e.id)
    return lambda e: (e.importance.score, e.temporal.last_accessed_at, e.id)


class MemoryStorageBackend(StorageBackend):
    """
    In-memory storage backend for testing.

    All data is stored in dictionaries keyed by user id.
    """

    def __init__(self, v: Variables = None):
        super().__init__(v)
        self._entries: dict[str, dict[str, MemoryEntry]] = {}  # user_id -> {entry_id -> entry}
        self._profiles: dict[str, UserProfile] = {}
        self._conversations: dict[tuple[str, str], Conversation] = {}  # (user_id, conversation_id) -> conversation
        self._turns: dict[tuple[str, str], list[ConversationTurn]] = {}
        self.logger.info("Initialized MemoryStorageBackend")

    async def connect(self) -> None:
        """Initialize storage (no-op for in-memory)."""
        self.logger.info("In-memory storage connected")

    async def disconnect(self) -> None:
        """Close storage (no-op for in-memory)."""
        self.logger.info("In-memory storage disconnected")

    async def health_check(self) -> bool:
        return True

    # ========== Memory Entries ==========

    async def create_entry(self, entry: MemoryEntry) -> MemoryEntry:
        user_entries = self._entries.setdefault(entry.user_id, {})
        if entry.id in user_entries:
            raise KeyError(f"Memory entry already exists: {entry.id}")
        user_entries[entry.id] = entry.model_copy(deep=True)
        return entry

    async def get_entry(self, user_id: str, entry_id: str) -> Optional[MemoryEntry]:
        entry = self._entries.get(user_id, {}).get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def get_entries(self, user_id: str, entry_ids: Iterable[str]) -> list[MemoryEntry]:
        user_entries = self._entries.get(user_id, {})
        return [user_entries[i].model_copy(deep=True) for i in entry_ids if i in user_entries]

    async def update_entry(self, entry: MemoryEntry) -> MemoryEntry:
        user_entries = self._entries.get(entry.user_id, {})
        if entry.id not in user_entries:
            raise KeyError(f"Memory entry not found: {entry.id}")
        user_entries[entry.id] = entry.model_copy(deep=True)
        return entry

    async def record_access(self, user_id: str, entry_ids: Iterable[str], at: datetime,
                            actor: str = "retrieval") -> int:
        user_entries = self._entries.get(user_id, {})
        count = 0
        for entry_id in entry_ids:
            entry = user_entries.get(entry_id)
            if entry is None:
                continue
            entry.mark_accessed(at=at, actor=actor)
            count += 1
        return count

    async def delete_entry(self, user_id: str, entry_id: str) -> bool:
        return self._entries.get(user_id, {}).pop(entry_id, None) is not None

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
        statuses = set(statuses) if statuses is not None else None
        kinds = set(kinds) if kinds is not None else None
        categories = set(categories) if categories is not None else None
        accessed_before = ensure_utc(accessed_before)
        expires_before = ensure_utc(expires_before)

        results = []
        for entry in self._entries.get(user_id, {}).values():
            if statuses is not None and entry.status not in statuses:
                continue
            if kinds is not None and entry.kind not in kinds:
                continue
            if categories is not None and entry.namespace.category not in categories:
                continue
            if accessed_before is not None and not ensure_utc(entry.temporal.last_accessed_at) < accessed_before:
                continue
            if expires_before is not None:
                if entry.temporal.expires_at is None or not ensure_utc(entry.temporal.expires_at) < expires_before:
                    continue
            if pinned is not None and entry.is_pinned != pinned:
                continue
            results.append(entry)

        results.sort(key=_sort_key(order_by), reverse=True)
        if limit is not None:
            results = results[:limit]
        return [e.model_copy(deep=True) for e in results]

    async def delete_user_entries(self, user_id: str) -> int:
        return len(self._entries.pop(user_id, {}))

    async def list_user_ids(self) -> list[str]:
        return sorted(uid for uid, entries in self._entries.items() if entries)

    async def entry_statistics(self, user_id: Optional[str] = None) -> dict[str, Any]:
        if user_id is not None:
            entries = list(self._entries.get(user_id, {}).values())
        else:
            entries = [e for user_entries in self._entries.values() for e in user_entries.values()]

        total = len(entries)
        return {
            'total': total,
            'by_status': dict(Counter(e.status.value for e in entries)),
            'by_kind': dict(Counter(e.kind.value for e in entries)),
            'avg_confidence': (sum(e.provenance.confidence for e in entries) / total) if total else 0.0,
            'avg_importance': (sum(e.importance.score for e in entries) / total) if total else 0.0,
        }

    # ========== Profiles ==========

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        self._profiles[profile.user_id] = profile.model_copy(deep=True)
        return profile

    # ========== Conversations ==========

    async def append_turn(self, turn: ConversationTurn) -> Conversation:
        key = (turn.user_id, turn.conversation_id)
        conversation = self._conversations.get(key)
        if conversation is None:
            conversation = Conversation(id=turn.conversation_id, user_id=turn.user_id, started_at=turn.created_at,
                                        last_message_at=turn.created_at)
            self._conversations[key] = conversation

        self._turns.setdefault(key, []).append(turn.model_copy(deep=True))
        conversation.turn_count += 1
        conversation.last_turn_id = turn.id
        conversation.last_message_at = max(ensure_utc(conversation.last_message_at), ensure_utc(turn.created_at))
        conversation.consolidated = False
        conversation.consolidated_at = None
        return conversation.model_copy(deep=True)

    async def get_turns(self, user_id: str, conversation_id: str, last: Optional[int] = None) -> list[ConversationTurn]:
        turns = self._turns.get((user_id, conversation_id), [])
        if last is not None:
            turns = turns[-last:] if last > 0 else []
        return [t.model_copy(deep=True) for t in turns]

    async def get_conversation(self, user_id: str, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get((user_id, conversation_id))
        return conversation.model_copy(deep=True) if conversation else None

    async def list_pending_conversations(self, idle_before: datetime, limit: int = 10) -> list[Conversation]:
        idle_before = ensure_utc(idle_before)
        pending = [
            c for c in self._conversations.values()
            if not c.consolidated and ensure_utc(c.last_message_at) < idle_before
        ]
        pending.sort(key=lambda c: c.last_message_at)
        return [c.model_copy(deep=True) for c in pending[:limit]]

    async def mark_conversation_consolidated(self, user_id: str, conversation_id: str, at: datetime) -> bool:
        conversation = self._conversations.get((user_id, conversation_id))
        if conversation is None:
            return False
        conversation.consolidated = True
        conversation.consolidated_at = at
        return True

    async def delete_user_conversations(self, user_id: str) -> int:
        removed = 0
        for key in [k for k in self._conversations if k[0] == user_id]:
            removed += len(self._turns.pop(key, []))
            del self._conversations[key]
        return removed


class MemoryStorageBackendPlugin(StoragePluginBase):
    PROVIDER_NAME = 'in-memory'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return MemoryStorageBackend(v=v)
