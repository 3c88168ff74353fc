"""Health, readiness and version endpoint tests."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_ready_reports_degraded_without_redis(client: AsyncClient) -> None:
    """Database is reachable; Redis was never initialized."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["redis"].startswith("error")
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert set(response.json()) == {"version", "environment"}
