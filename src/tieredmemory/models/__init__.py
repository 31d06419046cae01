"""
Core domain models for the tiered memory engine.

Exports all Pydantic models for memories, profiles, conversations and retrieval.
"""
from .memory import (
    AuditAction,
    AuditRecord,
    CONTENT_MAX_LENGTH,
    DataCategory,
    ExtractionMethod,
    Importance,
    ImportanceFactors,
    MemoryCandidate,
    MemoryCategory,
    MemoryEntry,
    MemoryKind,
    MemoryStatus,
    Namespace,
    Privacy,
    PrivacyLevel,
    Provenance,
    RetentionPolicy,
    SENSITIVE_DATA_CATEGORIES,
    SemanticInfo,
    Temporal,
    VersionRecord,
)
from .profile import (
    BehavioralStats,
    CommunicationPreferences,
    Goal,
    GoalPriority,
    Interest,
    ProfileAttribute,
    Skill,
    UserProfile,
)
from .session import (
    Conversation,
    ConversationTurn,
    SessionContext,
    TurnRole,
)
from .context import (
    ComposedContext,
    ConversationType,
    MemoryTier,
    RankedMemory,
    RequestContext,
    RetrievalMetadata,
    RetrievalResult,
    RetrievalState,
)

__all__ = [
    # Memory models
    "AuditAction",
    "AuditRecord",
    "CONTENT_MAX_LENGTH",
    "DataCategory",
    "ExtractionMethod",
    "Importance",
    "ImportanceFactors",
    "MemoryCandidate",
    "MemoryCategory",
    "MemoryEntry",
    "MemoryKind",
    "MemoryStatus",
    "Namespace",
    "Privacy",
    "PrivacyLevel",
    "Provenance",
    "RetentionPolicy",
    "SENSITIVE_DATA_CATEGORIES",
    "SemanticInfo",
    "Temporal",
    "VersionRecord",
    # Profile models
    "BehavioralStats",
    "CommunicationPreferences",
    "Goal",
    "GoalPriority",
    "Interest",
    "ProfileAttribute",
    "Skill",
    "UserProfile",
    # Conversation models
    "Conversation",
    "ConversationTurn",
    "SessionContext",
    "TurnRole",
    # Retrieval models
    "ComposedContext",
    "ConversationType",
    "MemoryTier",
    "RankedMemory",
    "RequestContext",
    "RetrievalMetadata",
    "RetrievalResult",
    "RetrievalState",
]
