"""
Memory domain models for the tiered memory engine.

Defines memory kinds, namespaces, importance factors, privacy attributes and
the long-term MemoryEntry record with its version history and audit trail.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

CONTENT_MAX_LENGTH = 5000


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_content(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Memory content cannot be empty")
    v = v.strip()
    if len(v) > CONTENT_MAX_LENGTH:
        raise ValueError(f"Memory content exceeds {CONTENT_MAX_LENGTH} characters")
    return v


class MemoryKind(str, Enum):
    """What sort of information a memory holds."""

    FACT = "fact"
    PREFERENCE = "preference"
    EXPERIENCE = "experience"
    SKILL = "skill"
    GOAL = "goal"
    RELATIONSHIP = "relationship"
    EVENT = "event"


class MemoryCategory(str, Enum):
    """Top-level namespace for a memory."""

    PERSONAL = "personal"
    WORK = "work"
    EDUCATION = "education"
    HOBBY = "hobby"
    HEALTH = "health"
    GENERAL = "general"


class ExtractionMethod(str, Enum):
    """How the memory was obtained."""

    AUTOMATIC = "automatic"  # pattern extraction from conversation turns
    EXPLICIT = "explicit"  # user asked to remember
    CONSOLIDATED = "consolidated"  # produced by merging memories
    INFERRED = "inferred"  # derived from other memories


class MemoryStatus(str, Enum):
    """Lifecycle status of a memory."""

    ACTIVE = "active"
    ARCHIVED = "archived"  # soft-forgotten, excluded from retrieval
    DEPRECATED = "deprecated"
    CONTRADICTED = "contradicted"  # superseded by a conflicting memory
    CONSOLIDATED = "consolidated"  # folded into another memory


class PrivacyLevel(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    SENSITIVE = "sensitive"
    CONFIDENTIAL = "confidential"


class DataCategory(str, Enum):
    GENERAL = "general"
    PERSONAL = "personal"
    HEALTH = "health"
    FINANCIAL = "financial"
    BIOMETRIC = "biometric"
    SPECIAL = "special"


SENSITIVE_DATA_CATEGORIES = frozenset({
    DataCategory.HEALTH,
    DataCategory.FINANCIAL,
    DataCategory.BIOMETRIC,
    DataCategory.SPECIAL,
})


class RetentionPolicy(str, Enum):
    STANDARD = "standard"
    EXTENDED = "extended"
    MINIMAL = "minimal"
    EXPLICIT_CONSENT = "explicit_consent"


class AuditAction(str, Enum):
    """Mutation recorded in a memory's audit trail."""

    CREATED = "created"
    ACCESSED = "accessed"
    UPDATED = "updated"
    MERGED = "merged"
    CONTRADICTED = "contradicted"
    ARCHIVED = "archived"
    RESTORED = "restored"
    EXPORTED = "exported"
    DELETED = "deleted"


class Namespace(BaseModel):
    """Category / subcategory / topic triple used for filtering and intent matching."""

    category: MemoryCategory = Field(MemoryCategory.GENERAL, description="Top-level category")
    subcategory: Optional[str] = Field(None, max_length=50, description="Optional subcategory")
    topic: Optional[str] = Field(None, max_length=100, description="Optional topic used for intent matching")


class Temporal(BaseModel):
    """Timestamps for a memory."""

    created_at: datetime = Field(default_factory=_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=_now, description="Last update timestamp")
    last_accessed_at: datetime = Field(default_factory=_now, description="Last retrieval timestamp")
    expires_at: Optional[datetime] = Field(None, description="Optional hard expiry")

    @model_validator(mode="after")
    def expiry_after_creation(self) -> "Temporal":
        if self.expires_at is not None and self.expires_at < self.created_at:
            raise ValueError("expires_at must not be earlier than created_at")
        return self


class ImportanceFactors(BaseModel):
    """Inputs to the importance score."""

    user_marked: bool = Field(False, description="Pinned by the user; exempt from automatic forgetting")
    access_count: int = Field(0, ge=0, description="Number of times the memory was retrieved")
    recency: float = Field(1.0, ge=0.0, le=1.0, description="Recency factor from the last decay pass")
    emotional_valence: float = Field(0.0, ge=-1.0, le=1.0, description="Sentiment attached to the memory")
    contradiction_count: int = Field(0, ge=0, description="Times this memory was contradicted")


class Importance(BaseModel):
    """Importance score with the factors it is derived from."""

    model_config = {"validate_assignment": True}

    score: float = Field(0.5, description="Importance in [0, 1]; out-of-range values are clamped")
    factors: ImportanceFactors = Field(default_factory=ImportanceFactors)
    decay_rate: float = Field(0.1, ge=0.0, description="Recency decay per day")

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> float:
        v = float(v)
        return min(1.0, max(0.0, v))


class Provenance(BaseModel):
    """Where a memory came from."""

    conversation_id: Optional[str] = Field(None, description="Source conversation")
    message_ids: list[str] = Field(default_factory=list, description="Source turn ids")
    extraction_method: ExtractionMethod = Field(ExtractionMethod.AUTOMATIC)
    rule: Optional[str] = Field(None, description="Extraction rule that produced the memory")
    confidence: float = Field(0.8, ge=0.0, le=1.0, description="Extraction confidence")


class SemanticInfo(BaseModel):
    embedding_id: Optional[str] = Field(None, description="Id of the vector in the user's namespace")
    keywords: list[str] = Field(default_factory=list)
    related_memory_ids: list[str] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, v: list[str]) -> list[str]:
        return sorted(set(k.strip().lower() for k in v if k and k.strip()))


class Privacy(BaseModel):
    level: PrivacyLevel = Field(PrivacyLevel.PRIVATE)
    data_category: DataCategory = Field(DataCategory.GENERAL)
    consent_granted: bool = Field(False)
    consent_granted_at: Optional[datetime] = Field(None)
    retention_policy: RetentionPolicy = Field(RetentionPolicy.STANDARD)

    @property
    def is_sensitive(self) -> bool:
        return self.level == PrivacyLevel.SENSITIVE or self.data_category in SENSITIVE_DATA_CATEGORIES


class VersionRecord(BaseModel):
    """Snapshot of a previous version of a memory."""

    version: int
    content: str
    reason: str
    updated_at: datetime = Field(default_factory=_now)


class AuditRecord(BaseModel):
    action: AuditAction
    timestamp: datetime = Field(default_factory=_now)
    actor: str = "system"
    details: dict[str, Any] = Field(default_factory=dict)


class MemoryEntry(BaseModel):
    """A durable long-term memory about one user."""

    # Identity
    id: str = Field(..., description="Unique memory identifier")
    user_id: str = Field(..., description="Owning user")

    # Content
    content: str = Field(..., description="The memory content")
    kind: MemoryKind = Field(MemoryKind.FACT, description="Kind of memory")
    namespace: Namespace = Field(default_factory=Namespace)

    temporal: Temporal = Field(default_factory=Temporal)
    importance: Importance = Field(default_factory=Importance)
    provenance: Provenance = Field(default_factory=Provenance)
    semantic: SemanticInfo = Field(default_factory=SemanticInfo)
    status: MemoryStatus = Field(MemoryStatus.ACTIVE)
    privacy: Privacy = Field(default_factory=Privacy)

    # Versioning & audit (append-only)
    version: int = Field(1, ge=1)
    history: list[VersionRecord] = Field(default_factory=list)
    audit: list[AuditRecord] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def content_valid(cls, v: str) -> str:
        return _validate_content(v)

    @property
    def is_pinned(self) -> bool:
        return self.importance.factors.user_marked

    @property
    def access_count(self) -> int:
        return self.importance.factors.access_count

    def record_audit(self, action: AuditAction, actor: str = "system", details: Optional[dict] = None,
                     at: Optional[datetime] = None) -> None:
        """Append an audit record."""
        self.audit.append(AuditRecord(action=action, timestamp=at or _now(), actor=actor, details=details or {}))

    def revise(self, reason: str, content: Optional[str] = None, at: Optional[datetime] = None) -> None:
        """Snapshot the current version into history and bump the version number."""
        at = at or _now()
        self.history.append(VersionRecord(version=self.version, content=self.content, reason=reason, updated_at=at))
        self.version += 1
        if content is not None:
            self.content = _validate_content(content)
        self.temporal.updated_at = at

    def mark_accessed(self, at: Optional[datetime] = None, actor: str = "system") -> None:
        at = at or _now()
        self.importance.factors.access_count += 1
        self.temporal.last_accessed_at = at
        self.record_audit(AuditAction.ACCESSED, actor=actor, at=at)

    def set_status(self, status: MemoryStatus, reason: str, actor: str = "system",
                   at: Optional[datetime] = None) -> None:
        """Change lifecycle status and record it in the audit trail."""
        at = at or _now()
        previous = self.status
        self.status = status
        self.temporal.updated_at = at
        action = {
            MemoryStatus.ARCHIVED: AuditAction.ARCHIVED,
            MemoryStatus.CONTRADICTED: AuditAction.CONTRADICTED,
            MemoryStatus.ACTIVE: AuditAction.RESTORED,
        }.get(status, AuditAction.UPDATED)
        self.record_audit(action, actor=actor, at=at,
                          details={"from": previous.value, "to": status.value, "reason": reason})


class MemoryCandidate(BaseModel):
    """A memory proposed by extraction, before deduplication and storage."""

    content: str
    kind: MemoryKind = MemoryKind.FACT
    namespace: Namespace = Field(default_factory=Namespace)
    confidence: float = Field(0.8, ge=0.0, le=1.0)
    emotional_valence: float = Field(0.0, ge=-1.0, le=1.0)
    keywords: list[str] = Field(default_factory=list)
    rule: Optional[str] = None
    extraction_method: ExtractionMethod = ExtractionMethod.AUTOMATIC
    message_ids: list[str] = Field(default_factory=list)
    privacy: Privacy = Field(default_factory=Privacy)
    pinned: bool = False
    expires_at: Optional[datetime] = None
