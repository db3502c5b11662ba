"""
Async Redis client. Redis is the Celery broker; the API only pings it for readiness.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from inventory_sync.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None


async def get_redis() -> Optional[Redis]:
    """Get or create async Redis client. Returns None when Redis is unreachable."""
    global _redis_client

    if _redis_client is None:
        try:
            _redis_client = aioredis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=False,
                health_check_interval=30,
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            _redis_client = None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
