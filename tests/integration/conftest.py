"""Pytest fixtures for tieredmemory integration tests.

These fixtures extend the base test fixtures from tests/conftest.py.
The `fastapi_app` fixture is inherited from the parent conftest and provides
a FastAPI app bound to the test framework's Variables instance. Services are
already running, so requests go straight through ASGITransport without
running the app lifespan again.
"""

from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient


@pytest.fixture
async def async_client(fastapi_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async client for FastAPI app."""
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def user_base(user_id: str) -> str:
    """URL prefix of the per-user endpoints."""
    return f"/v1/users/{user_id}"
