"""Conversation log and ephemeral session context models."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ConversationTurn(BaseModel):
    """One raw message in a conversation."""

    id: str = Field(..., description="Unique turn identifier")
    user_id: str = Field(..., description="Owning user")
    conversation_id: str = Field(..., description="Conversation this turn belongs to")
    role: TurnRole = Field(..., description="Who produced the turn")
    content: str = Field(..., description="Message text")
    created_at: datetime = Field(default_factory=_now)

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Turn content cannot be empty")
        return v.strip()


class Conversation(BaseModel):
    """Per-conversation bookkeeping used to schedule consolidation."""

    id: str
    user_id: str
    started_at: datetime = Field(default_factory=_now)
    last_message_at: datetime = Field(default_factory=_now)
    turn_count: int = Field(0, ge=0)
    last_turn_id: Optional[str] = None
    consolidated: bool = False
    consolidated_at: Optional[datetime] = None

    @property
    def fingerprint(self) -> str:
        return SessionContext.make_fingerprint(self.turn_count, self.last_turn_id)


class SessionContext(BaseModel):
    """
    Short-term and working tiers for one (user, conversation) pair.

    Lives only in the ephemeral cache. ``fingerprint`` identifies the newest turn
    the context was built from so newly arrived turns can be detected.
    """

    user_id: str
    conversation_id: str
    recent_turns: list[ConversationTurn] = Field(default_factory=list, description="Last N turns verbatim")
    summary: Optional[str] = Field(None, description="Rolling summary of older turns")
    summarized_through: int = Field(0, ge=0, description="Number of leading turns covered by the summary")
    turn_count: int = Field(0, ge=0)
    fingerprint: str = Field("0:", description="'<turn_count>:<last_turn_id>'")
    built_at: datetime = Field(default_factory=_now)

    @staticmethod
    def make_fingerprint(turn_count: int, last_turn_id: Optional[str]) -> str:
        return f"{turn_count}:{last_turn_id or ''}"
