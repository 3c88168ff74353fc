"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from stemquiz.redis_client import get_optional_redis


async def get_redis_dep() -> AsyncGenerator[object | None, None]:
    """Yield the Redis client, or None when Redis is not configured (events are then skipped)."""
    yield get_optional_redis()
