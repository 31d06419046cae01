"""Decay Service - Base interface, scoring functions and plugin."""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from scitrera_app_framework.api import Plugin, Variables, enabled_option_pattern

from ...config import TIEREDMEMORY_DECAY_PROVIDER, DEFAULT_TIEREDMEMORY_DECAY_PROVIDER
from ...models import MemoryEntry
from ...utils import days_between, ensure_utc
from ..ranking.default import frequency_score
from ..tasks import CancellationToken
from .._constants import EXT_STORAGE_BACKEND, EXT_VECTOR_INDEX, EXT_LOCK_SERVICE, EXT_DECAY_SERVICE

FORGET_MIN_AGE_DAYS = 90
FORGET_MAX_IMPORTANCE = 0.2
FORGET_NOT_ACCESSED_DAYS = 60


@dataclass
class DecayResult:
    """Result of a decay pass."""
    forgotten_count: int = 0
    updated_count: int = 0
    processed: int = 0
    users_processed: int = 0
    users_skipped: int = 0

    def add(self, other: 'DecayResult') -> None:
        self.forgotten_count += other.forgotten_count
        self.updated_count += other.updated_count
        self.processed += other.processed
        self.users_processed += other.users_processed
        self.users_skipped += other.users_skipped

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CleanupResult:
    archived_count: int = 0
    deleted_count: int = 0
    users_processed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def compute_recency_factor(entry: MemoryEntry, now: datetime) -> float:
    """exp(-decay_rate * age_days), age measured from creation."""
    return math.exp(-entry.importance.decay_rate * days_between(entry.temporal.created_at, now))


def calculate_importance_score(entry: MemoryEntry) -> float:
    """
    0.3 * pinned + 0.25 * frequency + 0.25 * recency + 0.1 * |valence| + 0.1 * confidence,
    clamped to [0, 1]. Uses only the entry's stored factors.
    """
    factors = entry.importance.factors
    score = (
            0.3 * (1.0 if factors.user_marked else 0.0)
            + 0.25 * frequency_score(factors.access_count)
            + 0.25 * factors.recency
            + 0.1 * abs(factors.emotional_valence)
            + 0.1 * entry.provenance.confidence
    )
    return min(1.0, max(0.0, score))


def should_forget(entry: MemoryEntry, now: datetime) -> bool:
    """
    Pinned memories are never forgotten. Otherwise forget when old and unimportant,
    not accessed for a long time, or past expiry.
    """
    if entry.is_pinned:
        return False
    now = ensure_utc(now)
    old_and_unimportant = (days_between(entry.temporal.created_at, now) > FORGET_MIN_AGE_DAYS
                           and entry.importance.score < FORGET_MAX_IMPORTANCE)
    not_accessed = days_between(entry.temporal.last_accessed_at, now) > FORGET_NOT_ACCESSED_DAYS
    expired = entry.temporal.expires_at is not None and ensure_utc(entry.temporal.expires_at) < now
    return old_and_unimportant or not_accessed or expired


class DecayService(ABC):
    """Interface for memory decay, forgetting and cleanup."""

    @abstractmethod
    async def decay_user(self, user_id: str, now: Optional[datetime] = None) -> DecayResult:
        """
        Recompute recency and importance for the user's active memories and archive
        those that should be forgotten.

        Raises:
            LockUnavailable: another worker holds the user's lock
        """
        pass

    @abstractmethod
    async def decay_all_users(self, batch_size: Optional[int] = None,
                              cancellation: Optional[CancellationToken] = None,
                              now: Optional[datetime] = None) -> DecayResult:
        """Decay every user, isolating per-user failures."""
        pass

    @abstractmethod
    async def cleanup(self, now: Optional[datetime] = None,
                      cancellation: Optional[CancellationToken] = None) -> CleanupResult:
        """Archive long-unused memories and hard-delete expired archived ones."""
        pass

    @property
    @abstractmethod
    def stats(self) -> dict:
        pass


# noinspection PyAbstractClass
class DecayServicePluginBase(Plugin):
    """Base plugin for decay service."""
    PROVIDER_NAME: str = None

    def name(self) -> str:
        return f"{EXT_DECAY_SERVICE}|{self.PROVIDER_NAME}"

    def extension_point_name(self, v: Variables) -> str:
        return EXT_DECAY_SERVICE

    def is_enabled(self, v: Variables) -> bool:
        return enabled_option_pattern(self, v, TIEREDMEMORY_DECAY_PROVIDER, self_attr='PROVIDER_NAME')

    def on_registration(self, v: Variables) -> None:
        v.set_default_value(TIEREDMEMORY_DECAY_PROVIDER, DEFAULT_TIEREDMEMORY_DECAY_PROVIDER)

    def get_dependencies(self, v: Variables):
        return (EXT_STORAGE_BACKEND, EXT_VECTOR_INDEX, EXT_LOCK_SERVICE)
