"""
Per-user memory API endpoints.

Endpoints:
- POST /v1/users/{user_id}/conversations/{conversation_id}/context - Build the memory context for a message
- POST /v1/users/{user_id}/conversations/{conversation_id}/turns - Record a conversation turn
- POST /v1/users/{user_id}/conversations/{conversation_id}/consolidate - Consolidate a conversation now
- POST /v1/users/{user_id}/memories - Store an explicit memory
- POST /v1/users/{user_id}/decay - Run decay for one user
- GET /v1/users/{user_id}/export - Export all memories and the profile
- DELETE /v1/users/{user_id}/memories - Erase all of a user's memory
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from scitrera_app_framework import Plugin, Variables

from .. import EXT_MULTI_API_ROUTERS
from ...exceptions import MemoryEngineError
from ...lifecycle.fastapi import get_logger
from ...models import RetrievalResult
from ...services.engine import MemoryEngine
from .deps import get_memory_engine, to_http_exception
from .schemas import (
    ContextRequest,
    ErrorResponse,
    MemoryCreateRequest,
    MemoryResponse,
    TurnCreateRequest,
    TurnResponse,
)

router = APIRouter(prefix="/v1/users/{user_id}", tags=["memory"])


@router.post(
    "/conversations/{conversation_id}/context",
    response_model=RetrievalResult,
)
async def build_context(
        user_id: str,
        conversation_id: str,
        request: ContextRequest,
        engine: MemoryEngine = Depends(get_memory_engine),
) -> RetrievalResult:
    """
    Build the memory context for the next model call.

    Tier failures do not fail the request; they are reported in ``metadata.failed_tiers``.
    """
    return await engine.retrieve(
        user_id,
        conversation_id,
        request.current_message,
        intent=request.intent,
        max_tokens=request.max_tokens,
        deadline_ms=request.deadline_ms,
        conversation_type=request.conversation_type,
        request_context=request.request_context(user_id),
    )


@router.post(
    "/conversations/{conversation_id}/turns",
    response_model=TurnResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_turn(
        user_id: str,
        conversation_id: str,
        request: TurnCreateRequest,
        engine: MemoryEngine = Depends(get_memory_engine),
        logger: logging.Logger = Depends(get_logger),
) -> TurnResponse:
    try:
        turn = await engine.record_turn(user_id, conversation_id, request.role, request.content,
                                        turn_id=request.turn_id)
    except MemoryEngineError as e:
        logger.warning("Failed to record turn for user %s: %s", user_id, e)
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return TurnResponse(turn=turn)


@router.post(
    "/conversations/{conversation_id}/consolidate",
    responses={409: {"model": ErrorResponse, "description": "User is locked by another job"}},
)
async def consolidate_conversation(
        user_id: str,
        conversation_id: str,
        engine: MemoryEngine = Depends(get_memory_engine),
        logger: logging.Logger = Depends(get_logger),
) -> dict[str, Any]:
    try:
        result = await engine.consolidate(user_id, conversation_id)
    except MemoryEngineError as e:
        logger.warning("Consolidation of %s for user %s failed: %s", conversation_id, user_id, e)
        raise to_http_exception(e)
    return result.to_dict()


@router.post(
    "/memories",
    response_model=MemoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "User is locked by another job"},
        422: {"model": ErrorResponse, "description": "Memory content rejected"},
        503: {"model": ErrorResponse, "description": "Embedding provider unavailable"},
    },
)
async def create_memory(
        user_id: str,
        request: MemoryCreateRequest,
        engine: MemoryEngine = Depends(get_memory_engine),
        logger: logging.Logger = Depends(get_logger),
) -> MemoryResponse:
    """Store a user-stated memory through deduplication, validation and the dual write."""
    try:
        memory = await engine.remember(
            user_id,
            request.content,
            kind=request.kind,
            namespace=request.namespace,
            pinned=request.pinned,
            privacy=request.privacy,
            expires_at=request.expires_at,
        )
    except MemoryEngineError as e:
        logger.warning("Rejected memory for user %s: %s", user_id, e)
        raise to_http_exception(e)

    logger.info("Stored memory %s for user %s", memory.id, user_id)
    return MemoryResponse(memory=memory)


@router.post(
    "/decay",
    responses={409: {"model": ErrorResponse, "description": "User is locked by another job"}},
)
async def decay_user(
        user_id: str,
        engine: MemoryEngine = Depends(get_memory_engine),
        logger: logging.Logger = Depends(get_logger),
) -> dict[str, Any]:
    try:
        result = await engine.decay(user_id)
    except MemoryEngineError as e:
        logger.warning("Decay for user %s failed: %s", user_id, e)
        raise to_http_exception(e)
    return result.to_dict()


@router.get("/export")
async def export_memories(
        user_id: str,
        engine: MemoryEngine = Depends(get_memory_engine),
) -> dict[str, Any]:
    return await engine.export_user_memories(user_id)


@router.delete(
    "/memories",
    responses={409: {"model": ErrorResponse, "description": "User is locked by another job"}},
)
async def erase_memories(
        user_id: str,
        engine: MemoryEngine = Depends(get_memory_engine),
        logger: logging.Logger = Depends(get_logger),
) -> dict[str, int]:
    try:
        return await engine.erase_user_memories(user_id)
    except MemoryEngineError as e:
        logger.warning("Erase for user %s failed: %s", user_id, e)
        raise to_http_exception(e)


class MemoryAPIPlugin(Plugin):
    """Plugin to register per-user memory API routes."""

    def extension_point_name(self, v: Variables) -> str:
        return EXT_MULTI_API_ROUTERS

    def is_enabled(self, v: Variables) -> bool:
        return False

    def initialize(self, v: Variables, logger: logging.Logger) -> object | None:
        return router

    def is_multi_extension(self, v: Variables) -> bool:
        return True
