"""Health check endpoints for the tiered memory API."""
import logging

from typing import Any, Dict

from fastapi import APIRouter, status, Depends
from fastapi.responses import JSONResponse
from scitrera_app_framework import Plugin, Variables, get_extension

from ..lifecycle.fastapi import get_logger, get_variables_dep
from ..services.engine import MemoryEngine, EXT_MEMORY_ENGINE
from ..services.storage import StorageBackend, EXT_STORAGE_BACKEND
from ..services.vector import VectorIndex, EXT_VECTOR_INDEX
from . import EXT_MULTI_API_ROUTERS

router = APIRouter(tags=['health'])


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """
    Basic health check endpoint.

    Returns:
        dict: Health status
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(
        v: Variables = Depends(get_variables_dep),
        logger: logging.Logger = Depends(get_logger),
) -> JSONResponse:
    """
    Readiness check endpoint verifying structured storage and vector index connectivity.

    The vector index is reported but does not gate readiness; retrieval degrades without it.
    """
    checks = {
        "status": "ready",
        "services": {},
    }

    try:
        storage: StorageBackend = get_extension(EXT_STORAGE_BACKEND, v)
        is_healthy = await storage.health_check()
        checks["services"]["database"] = "connected" if is_healthy else "disconnected"
        if not is_healthy:
            checks["status"] = "not_ready"
    except Exception as e:
        logger.error("Database connectivity check failed: %s", e)
        checks["services"]["database"] = "disconnected"
        checks["status"] = "not_ready"

    try:
        vector_index: VectorIndex = get_extension(EXT_VECTOR_INDEX, v)
        checks["services"]["vector_index"] = "connected" if await vector_index.health_check() else "disconnected"
    except Exception as e:
        logger.warning("Vector index connectivity check failed: %s", e)
        checks["services"]["vector_index"] = "disconnected"

    status_code = (
        status.HTTP_200_OK
        if checks["status"] == "ready"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )

    return JSONResponse(content=checks, status_code=status_code)


@router.get("/v1/engine/health")
async def engine_health(v: Variables = Depends(get_variables_dep)) -> Dict[str, Any]:
    """Engine counters: tier latencies, cache hit rate, forgetting rate and detected issues."""
    engine: MemoryEngine = get_extension(EXT_MEMORY_ENGINE, v)
    return await engine.health()


class HealthAPIPlugin(Plugin):
    """Plugin to register health API routes."""

    def extension_point_name(self, v: Variables) -> str:
        return EXT_MULTI_API_ROUTERS

    def is_enabled(self, v: Variables) -> bool:
        return False  # disable "single" extension for a multi-extension plugin

    def initialize(self, v: Variables, logger: logging.Logger) -> object | None:
        return router

    def is_multi_extension(self, v: Variables) -> bool:
        return True
