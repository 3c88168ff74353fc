"""Best-effort Redis pub/sub fan-out for progression events."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

BADGE_EARNED_CHANNEL = "pubsub:badge_earned"
LEVEL_UP_CHANNEL = "pubsub:level_up"
STREAK_MILESTONE_CHANNEL = "pubsub:streak_milestone"


async def publish_event(redis: object | None, channel: str, payload: dict) -> None:
    """Publish a JSON payload. Missing Redis or publish errors never reach the caller."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s event", channel, exc_info=True)
