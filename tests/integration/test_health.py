"""Integration tests for health check endpoints."""

from httpx import AsyncClient


async def test_health_check(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_readiness_check(async_client: AsyncClient) -> None:
    response = await async_client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["services"] == {"database": "connected", "vector_index": "connected"}


async def test_root_endpoint(async_client: AsyncClient) -> None:
    response = await async_client.get("/")
    assert response.status_code == 200

    data = response.json()
    assert data["name"] == "tieredmemory"
    assert "version" in data
    assert "description" in data


async def test_engine_health(async_client: AsyncClient) -> None:
    response = await async_client.get("/v1/engine/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] in ("healthy", "issues_detected")
    assert data["storage"] == "ok"
    for key in ("tier_latencies", "cache_hit_rate", "forgotten_rate", "issues"):
        assert key in data
