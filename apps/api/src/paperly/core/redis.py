"""
Redis Configuration

Async Redis client used for live pub/sub delivery of realtime events.
"""

import json
import logging
from typing import Any

from redis.asyncio import Redis, from_url

from paperly.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize Redis connection.

    Call this on application startup.
    """
    global redis_client
    redis_client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Test connection
    await redis_client.ping()
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get Redis client instance.

    Returns None if Redis is not available. Live delivery is best-effort,
    so callers treat None as "nobody is listening".
    """
    return redis_client


async def publish(redis: Redis | None, channel: str, message: dict[str, Any]) -> bool:
    """
    Publish a JSON message on a channel.

    Never raises: returns False when Redis is unavailable or the publish
    fails.
    """
    if redis is None:
        logger.debug(f"Redis unavailable, skipping publish on {channel}")
        return False
    try:
        await redis.publish(channel, json.dumps(message, default=str))
        return True
    except Exception as e:
        logger.error(f"Failed to publish on {channel}: {e}")
        return False


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
