"""User profile model maintained by consolidation and read by the context composer."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProfileAttribute(BaseModel):
    """A single profile value with the evidence behind it."""

    value: str
    confidence: float = Field(0.8, ge=0.0, le=1.0)
    source_memory_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=_now)


class Interest(BaseModel):
    topic: str
    strength: float = Field(0.7, ge=0.0, le=1.0)
    first_seen_at: datetime = Field(default_factory=_now)
    last_seen_at: datetime = Field(default_factory=_now)


class Goal(BaseModel):
    description: str
    priority: GoalPriority = GoalPriority.MEDIUM
    created_at: datetime = Field(default_factory=_now)
    achieved: bool = False


class Skill(BaseModel):
    name: str
    level: Optional[str] = None
    confidence: float = Field(0.7, ge=0.0, le=1.0)


class CommunicationPreferences(BaseModel):
    formality: Optional[str] = Field(None, description="e.g. casual, formal")
    response_length: Optional[str] = Field(None, description="e.g. concise, detailed")
    use_examples: Optional[bool] = Field(None, description="Prefers worked examples")
    favorite_topics: list[str] = Field(default_factory=list)


class BehavioralStats(BaseModel):
    conversation_count: int = Field(0, ge=0)
    memory_count: int = Field(0, ge=0)
    topic_diversity: int = Field(0, ge=0, description="Number of distinct topics seen")
    last_active_at: Optional[datetime] = None


class UserProfile(BaseModel):
    """Aggregated, slowly-changing facts about one user."""

    user_id: str = Field(..., description="Owning user")

    # Identity
    name: Optional[ProfileAttribute] = None
    role: Optional[ProfileAttribute] = None
    location: Optional[ProfileAttribute] = None
    languages: list[str] = Field(default_factory=list)
    industry: Optional[str] = None

    skills: list[Skill] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    interests: list[Interest] = Field(default_factory=list)
    current_learning: list[str] = Field(default_factory=list)
    learning_style: Optional[str] = None

    communication: CommunicationPreferences = Field(default_factory=CommunicationPreferences)
    behavior: BehavioralStats = Field(default_factory=BehavioralStats)

    completeness: float = Field(0.0, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def calculate_completeness(self) -> float:
        """Weighted checklist over profile sections; stores and returns a value in [0, 1]."""
        score = 0

        # personal (20)
        score += 5 if self.name else 0
        score += 5 if self.role else 0
        score += 5 if self.location else 0
        score += 5 if self.languages else 0

        # professional (15)
        score += 8 if self.skills else 0
        score += 7 if self.industry else 0

        # learning (25)
        score += 8 if self.goals else 0
        score += 8 if self.interests else 0
        score += 4 if self.learning_style else 0
        score += 5 if self.current_learning else 0

        # preferences (20)
        score += 5 if self.communication.formality else 0
        score += 5 if self.communication.response_length else 0
        score += 5 if self.communication.use_examples is not None else 0
        score += 5 if self.communication.favorite_topics else 0

        # behavioral (20)
        score += 10 if self.behavior.conversation_count > 5 else 0
        score += 5 if self.behavior.topic_diversity > 0 else 0
        score += 5 if self.behavior.memory_count > 0 else 0

        self.completeness = score / 100.0
        return self.completeness

    def clear(self) -> None:
        """Reset every learned attribute, keeping the profile record itself."""
        fresh = UserProfile(user_id=self.user_id, created_at=self.created_at)
        for field_name in UserProfile.model_fields:
            if field_name in ('user_id', 'created_at'):
                continue
            setattr(self, field_name, getattr(fresh, field_name))

    def summary_lines(self) -> list[str]:
        """Human-readable facts for the context block, most identifying first."""
        lines = []
        if self.name:
            lines.append(f"Name: {self.name.value}")
        if self.role:
            lines.append(f"Role: {self.role.value}")
        if self.location:
            lines.append(f"Location: {self.location.value}")
        if self.skills:
            lines.append("Skills: " + ", ".join(s.name for s in self.skills[:5]))
        if self.interests:
            top = sorted(self.interests, key=lambda i: i.strength, reverse=True)[:5]
            lines.append("Interests: " + ", ".join(i.topic for i in top))
        if self.goals:
            active = [g.description for g in self.goals if not g.achieved][:3]
            if active:
                lines.append("Goals: " + "; ".join(active))
        if self.current_learning:
            lines.append("Currently learning: " + ", ".join(self.current_learning[:3]))
        prefs = [p for p in (self.communication.formality, self.communication.response_length) if p]
        if prefs:
            lines.append("Prefers " + " and ".join(prefs) + " responses")
        return lines
