"""
Unit tests for core domain models.

Tests enums, validators and the mutation helpers on MemoryEntry and UserProfile.
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from tieredmemory.models import (
    AuditAction,
    Conversation,
    ConversationTurn,
    DataCategory,
    Importance,
    MemoryEntry,
    MemoryStatus,
    Privacy,
    PrivacyLevel,
    ProfileAttribute,
    RetrievalMetadata,
    RetrievalState,
    SemanticInfo,
    SessionContext,
    Skill,
    Temporal,
    TurnRole,
    UserProfile,
)


class TestMemoryEntry:
    """MemoryEntry validation and history."""

    def test_content_is_stripped(self):
        entry = MemoryEntry(id="mem_1", user_id="u1", content="  likes tea  ")
        assert entry.content == "likes tea"

    def test_empty_content_rejected(self):
        with pytest.raises(ValidationError):
            MemoryEntry(id="mem_1", user_id="u1", content="   ")

    def test_oversized_content_rejected(self):
        with pytest.raises(ValidationError):
            MemoryEntry(id="mem_1", user_id="u1", content="x" * 5001)

    def test_importance_score_is_clamped(self):
        assert Importance(score=1.7).score == 1.0
        assert Importance(score=-0.3).score == 0.0

        importance = Importance()
        importance.score = 3.0
        assert importance.score == 1.0

    def test_expiry_before_creation_rejected(self):
        created = datetime(2025, 1, 10, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            Temporal(created_at=created, expires_at=created - timedelta(days=1))

    def test_keywords_normalized(self):
        info = SemanticInfo(keywords=["Python", " python ", "", "Rust"])
        assert info.keywords == ["python", "rust"]

    def test_revise_keeps_history(self):
        entry = MemoryEntry(id="mem_1", user_id="u1", content="Works at Acme")
        entry.revise(reason="correction", content="Works at Globex")

        assert entry.version == 2
        assert entry.content == "Works at Globex"
        assert entry.history[0].version == 1
        assert entry.history[0].content == "Works at Acme"

    def test_mark_accessed_updates_factors_and_audit(self):
        entry = MemoryEntry(id="mem_1", user_id="u1", content="Likes tea")
        at = datetime(2025, 3, 1, tzinfo=timezone.utc)
        entry.mark_accessed(at=at, actor="retrieval")

        assert entry.access_count == 1
        assert entry.temporal.last_accessed_at == at
        assert entry.audit[-1].action == AuditAction.ACCESSED
        assert entry.audit[-1].actor == "retrieval"

    def test_set_status_records_transition(self):
        entry = MemoryEntry(id="mem_1", user_id="u1", content="Likes tea")
        entry.set_status(MemoryStatus.ARCHIVED, reason="decay")

        assert entry.status == MemoryStatus.ARCHIVED
        record = entry.audit[-1]
        assert record.action == AuditAction.ARCHIVED
        assert record.details == {"from": "active", "to": "archived", "reason": "decay"}


class TestPrivacy:

    def test_sensitive_by_level(self):
        assert Privacy(level=PrivacyLevel.SENSITIVE).is_sensitive

    def test_sensitive_by_category(self):
        assert Privacy(data_category=DataCategory.HEALTH).is_sensitive
        assert not Privacy(data_category=DataCategory.PERSONAL).is_sensitive


class TestConversationModels:

    def test_turn_content_required(self):
        with pytest.raises(ValidationError):
            ConversationTurn(id="t1", user_id="u1", conversation_id="c1", role=TurnRole.USER, content="  ")

    def test_fingerprint_tracks_last_turn(self):
        conversation = Conversation(id="c1", user_id="u1", turn_count=3, last_turn_id="t3")
        assert conversation.fingerprint == "3:t3"
        assert SessionContext.make_fingerprint(0, None) == "0:"


class TestUserProfile:

    def test_completeness_weighting(self):
        profile = UserProfile(user_id="u1")
        assert profile.calculate_completeness() == 0.0

        profile.name = ProfileAttribute(value="Alex")
        profile.skills = [Skill(name="python")]
        assert profile.calculate_completeness() == pytest.approx(0.13)

    def test_summary_lines_order(self):
        profile = UserProfile(
            user_id="u1",
            name=ProfileAttribute(value="Alex"),
            role=ProfileAttribute(value="Data scientist"),
            current_learning=["rust"],
        )
        lines = profile.summary_lines()
        assert lines[0] == "Name: Alex"
        assert lines[1] == "Role: Data scientist"
        assert "Currently learning: rust" in lines

    def test_clear_keeps_identity(self):
        created = datetime(2025, 1, 1, tzinfo=timezone.utc)
        profile = UserProfile(user_id="u1", created_at=created, name=ProfileAttribute(value="Alex"),
                              languages=["en"])
        profile.clear()

        assert profile.user_id == "u1"
        assert profile.created_at == created
        assert profile.name is None
        assert profile.languages == []


class TestRetrievalMetadata:

    def test_final_state(self):
        metadata = RetrievalMetadata()
        assert metadata.final_state == RetrievalState.IDLE
        metadata.states = [RetrievalState.IDLE, RetrievalState.FETCHING_TIERS, RetrievalState.ERROR]
        assert metadata.final_state == RetrievalState.ERROR
