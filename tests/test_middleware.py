"""Middleware tests: request ID, rate limiting, CORS, error handling."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_rate_limit_fails_open_without_redis(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


def _fake_redis(count: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[count, True])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    return redis


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr("stemquiz.middleware.rate_limit.get_redis", lambda: _fake_redis(1))
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr("stemquiz.middleware.rate_limit.get_redis", lambda: _fake_redis(101))
    response = await client.get("/version")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr("stemquiz.middleware.rate_limit.get_redis", lambda: _fake_redis(1000))
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_is_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-endpoint")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}
