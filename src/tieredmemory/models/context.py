"""Retrieval request and result models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .memory import DataCategory, MemoryCategory, MemoryEntry


class MemoryTier(str, Enum):
    SHORT_TERM = "short_term"
    WORKING = "working"
    LONG_TERM = "long_term"
    PROFILE = "profile"


class RetrievalState(str, Enum):
    """States a single retrieval request passes through."""

    IDLE = "idle"
    FETCHING_TIERS = "fetching_tiers"
    RANKING = "ranking"
    COMPOSING = "composing"
    DONE = "done"
    ERROR = "error"


class ConversationType(str, Enum):
    """Selects the token allocation profile of the composer."""

    STANDARD = "standard"
    TUTORING = "tutoring"
    QUICK = "quick"


class RequestContext(BaseModel):
    """Privacy scope of a retrieval request."""

    user_id: Optional[str] = None
    consented_categories: set[DataCategory] = Field(
        default_factory=set,
        description="Sensitive data categories the user has consented to for this request",
    )
    include_categories: Optional[set[MemoryCategory]] = Field(None, description="Only these namespaces")
    exclude_categories: set[MemoryCategory] = Field(default_factory=set, description="Never these namespaces")
    consented_only: bool = Field(False, description="Only memories with explicit consent")


class RankedMemory(BaseModel):
    """A long-term memory with its relevance score and score breakdown."""

    entry: MemoryEntry
    score: float = Field(..., ge=0.0, le=1.0)
    similarity: float = Field(0.0, ge=0.0, le=1.0)
    components: dict[str, float] = Field(default_factory=dict)


class ComposedContext(BaseModel):
    text: str = ""
    estimated_tokens: int = 0
    truncated: bool = False
    tier_tokens: dict[str, int] = Field(default_factory=dict)
    dropped_entries: int = 0
    memory_ids: list[str] = Field(default_factory=list, description="Long-term memories included in the text")


class RetrievalMetadata(BaseModel):
    degraded: bool = False
    failed_tiers: list[MemoryTier] = Field(default_factory=list)
    cached: bool = False
    states: list[RetrievalState] = Field(default_factory=list)
    tier_latencies_ms: dict[str, float] = Field(default_factory=dict)
    deadline_exceeded: bool = False
    embedding_failed: bool = False
    estimated_tokens: int = 0
    truncated: bool = False
    memory_ids: list[str] = Field(default_factory=list)
    elapsed_ms: float = 0.0
    conversation_type: ConversationType = ConversationType.STANDARD
    error: Optional[str] = None

    @property
    def final_state(self) -> RetrievalState:
        return self.states[-1] if self.states else RetrievalState.IDLE


class RetrievalResult(BaseModel):
    formatted_context: str = ""
    metadata: RetrievalMetadata = Field(default_factory=RetrievalMetadata)
