"""Shared FastAPI dependencies for v1 API."""
from fastapi import Depends, HTTPException, status
from scitrera_app_framework import Variables, get_extension

from ...exceptions import (
    ConsolidationConflict, EmbeddingFailure, InvalidMemoryContent, LockUnavailable, MemoryEngineError, QuotaExceeded,
    TierUnavailable,
)
from ...lifecycle.fastapi import get_variables_dep
from ...services.engine import MemoryEngine, EXT_MEMORY_ENGINE


async def get_memory_engine(v: Variables = Depends(get_variables_dep)) -> MemoryEngine:
    """Get memory engine instance for FastAPI dependency injection."""
    return get_extension(EXT_MEMORY_ENGINE, v)


def to_http_exception(e: MemoryEngineError) -> HTTPException:
    """Map a domain error onto an HTTP status."""
    detail = {"error": e.__class__.__name__, "message": e.message, "details": None}
    headers = None

    if isinstance(e, InvalidMemoryContent):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(e, LockUnavailable):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(e, ConsolidationConflict):
        status_code = status.HTTP_409_CONFLICT
        detail["details"] = {"existing_id": e.existing_id}
    elif isinstance(e, QuotaExceeded):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        if e.retry_after is not None:
            headers = {"Retry-After": str(int(e.retry_after))}
            detail["details"] = {"retry_after": e.retry_after}
    elif isinstance(e, (EmbeddingFailure, TierUnavailable)):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(status_code=status_code, detail=detail, headers=headers)
