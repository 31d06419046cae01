"""Request and response schemas for the v1 API."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ...models import (
    ConversationTurn, ConversationType, DataCategory, MemoryCategory, MemoryEntry, MemoryKind, Namespace, Privacy,
    RequestContext, TurnRole,
)


class ContextRequest(BaseModel):
    """Build the memory context for the next model call."""

    current_message: str = Field(..., description="The user message being answered")
    intent: Optional[str] = Field(None, description="Intent tag of the message (boosts matching memories)")
    max_tokens: Optional[int] = Field(None, ge=0, description="Token budget (defaults to engine configuration)")
    deadline_ms: Optional[float] = Field(None, gt=0, description="Overall fetch deadline in milliseconds")
    conversation_type: ConversationType = Field(ConversationType.STANDARD)
    consented_categories: set[DataCategory] = Field(default_factory=set)
    include_categories: Optional[set[MemoryCategory]] = None
    exclude_categories: set[MemoryCategory] = Field(default_factory=set)
    consented_only: bool = False

    def request_context(self, user_id: str) -> RequestContext:
        return RequestContext(
            user_id=user_id,
            consented_categories=self.consented_categories,
            include_categories=self.include_categories,
            exclude_categories=self.exclude_categories,
            consented_only=self.consented_only,
        )


class TurnCreateRequest(BaseModel):
    role: TurnRole
    content: str = Field(..., min_length=1)
    turn_id: Optional[str] = Field(None, description="Caller supplied id (generated when omitted)")


class TurnResponse(BaseModel):
    turn: ConversationTurn


class MemoryCreateRequest(BaseModel):
    """An explicit, user-stated memory."""

    content: str = Field(..., min_length=1)
    kind: MemoryKind = Field(MemoryKind.FACT)
    namespace: Optional[Namespace] = None
    pinned: bool = Field(False, description="Exempt from automatic forgetting")
    privacy: Optional[Privacy] = None
    expires_at: Optional[datetime] = None


class MemoryResponse(BaseModel):
    memory: MemoryEntry


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error details")
