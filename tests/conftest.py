"""
Pytest configuration and fixtures for tieredmemory tests.

Uses scitrera-app-framework dependency injection for service configuration.
Each test session gets an isolated Variables instance that does NOT pull from
environment variables - all configuration is set explicitly for test isolation.

Usage in tests:
    async def test_something(memory_engine):
        result = await memory_engine.retrieve(...)
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from scitrera_app_framework import Variables, get_extension
from tieredmemory.config import (
    TIEREDMEMORY_EMBEDDING_PROVIDER,
    TIEREDMEMORY_STORAGE_BACKEND,
    TIEREDMEMORY_DATA_DIR,
    TIEREDMEMORY_SUMMARIZATION_PROVIDER,
)
from tieredmemory.models import (
    Importance, ImportanceFactors, MemoryEntry, MemoryKind, Namespace, Provenance, Temporal,
)
from tieredmemory.services.tasks.asyncio_impl import TIEREDMEMORY_TASKS_ENABLED


# -----------------------------------------------------------------------------
# Logging Configuration (initialized by test harness, not framework)
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def test_logger() -> logging.Logger:
    """
    Create a root logger for tests.

    The test harness owns logging configuration, not the framework.
    """
    logger = logging.getLogger("tieredmemory-test")
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s %(funcName)s() > %(message)s',
            datefmt='%Y/%m/%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


# -----------------------------------------------------------------------------
# Framework Initialization with Test Isolation
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="session")
async def test_configuration():
    """
    Isolated Variables instance with the test configuration. The test's local
    framework is built on top of it.
    """
    v = Variables()
    v.set(TIEREDMEMORY_EMBEDDING_PROVIDER, "mock")
    v.set(TIEREDMEMORY_STORAGE_BACKEND, "sqlite")
    v.set(TIEREDMEMORY_SUMMARIZATION_PROVIDER, "heuristic")
    v.set(TIEREDMEMORY_TASKS_ENABLED, "false")  # Disable background tasks for tests
    return v


@pytest_asyncio.fixture(scope="session")
async def test_framework(test_configuration, tmp_path_factory, test_logger):
    """
    Initialize an isolated framework instance for the test session.

    Yields:
        tuple: (v: Variables, services: module) for use in tests
    """
    from tieredmemory.dependencies import preconfigure, initialize_services, shutdown_services

    tmp_dir = tmp_path_factory.mktemp("tieredmemory_test")

    v = test_configuration
    v.set(TIEREDMEMORY_DATA_DIR, str(tmp_dir))

    v, services = preconfigure(v=v, test_mode=True, test_logger=test_logger)
    v = await initialize_services(v)

    yield v, services

    await shutdown_services(v)


@pytest.fixture(scope="session")
def v(test_framework):
    """Isolated Variables instance for tests."""
    v, _ = test_framework
    return v


@pytest.fixture(scope='session')
def fastapi_app(test_framework):
    """FastAPI app instance for tests (services are already initialized by test_framework)."""
    from tieredmemory.lifecycle.fastapi import fastapi_app_factory
    v, _ = test_framework
    app = fastapi_app_factory(v=v)
    app.state.v = v
    return app


# -----------------------------------------------------------------------------
# Convenience Service Fixtures
# These just call the DI system with the isolated Variables instance.
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture
async def memory_engine(v):
    """Get the memory engine."""
    from tieredmemory.services.engine import EXT_MEMORY_ENGINE
    return get_extension(EXT_MEMORY_ENGINE, v)


@pytest_asyncio.fixture
async def storage_backend(v):
    """Get the storage backend."""
    from tieredmemory.services.storage import EXT_STORAGE_BACKEND
    return get_extension(EXT_STORAGE_BACKEND, v)


@pytest_asyncio.fixture
async def vector_index(v):
    from tieredmemory.services.vector import EXT_VECTOR_INDEX
    return get_extension(EXT_VECTOR_INDEX, v)


@pytest_asyncio.fixture
async def embedding_service(v):
    """Get the embedding service."""
    from tieredmemory.services.embedding import EXT_EMBEDDING_SERVICE
    return get_extension(EXT_EMBEDDING_SERVICE, v)


@pytest_asyncio.fixture
async def cache_service(v):
    from tieredmemory.services.cache import EXT_CACHE_SERVICE
    return get_extension(EXT_CACHE_SERVICE, v)


@pytest_asyncio.fixture
async def session_service(v):
    from tieredmemory.services.session import EXT_SESSION_SERVICE
    return get_extension(EXT_SESSION_SERVICE, v)


@pytest_asyncio.fixture
async def consolidation_service(v):
    """Get the consolidation service."""
    from tieredmemory.services.consolidation import EXT_CONSOLIDATION_SERVICE
    return get_extension(EXT_CONSOLIDATION_SERVICE, v)


@pytest_asyncio.fixture
async def profile_service(v):
    from tieredmemory.services.profile import EXT_PROFILE_SERVICE
    return get_extension(EXT_PROFILE_SERVICE, v)


@pytest_asyncio.fixture
async def lock_service(v):
    from tieredmemory.services.lock import EXT_LOCK_SERVICE
    return get_extension(EXT_LOCK_SERVICE, v)


# -----------------------------------------------------------------------------
# Test Data Factories
# -----------------------------------------------------------------------------

@pytest.fixture
def user_id() -> str:
    """Unique user id per test so the shared session storage stays isolated."""
    return f"user_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def conversation_id() -> str:
    return f"conv_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_entry():
    """Factory for MemoryEntry records with explicit ages and factors."""

    def _make(
            user_id: str = "user_1",
            content: str = "User prefers Python for backend development",
            kind: MemoryKind = MemoryKind.FACT,
            namespace: Namespace = None,
            age_days: float = 0.0,
            accessed_days_ago: float = None,
            now: datetime = None,
            score: float = 0.5,
            access_count: int = 0,
            pinned: bool = False,
            valence: float = 0.0,
            confidence: float = 0.8,
            expires_at: datetime = None,
            entry_id: str = None,
    ) -> MemoryEntry:
        now = now or datetime.now(timezone.utc)
        created = now - timedelta(days=age_days)
        accessed = now - timedelta(days=age_days if accessed_days_ago is None else accessed_days_ago)
        return MemoryEntry(
            id=entry_id or f"mem_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            content=content,
            kind=kind,
            namespace=namespace or Namespace(),
            temporal=Temporal(created_at=created, updated_at=created, last_accessed_at=accessed,
                              expires_at=expires_at),
            importance=Importance(
                score=score,
                factors=ImportanceFactors(user_marked=pinned, access_count=access_count, emotional_valence=valence),
            ),
            provenance=Provenance(confidence=confidence),
        )

    return _make
