"""
Health checks for the inventory sync service dependencies (PostgreSQL, Redis)
and the aggregated status served by /health and /health/ready.
"""
import asyncio
from typing import Any, Dict

from sqlalchemy import text

from inventory_sync.core.config import get_settings
from inventory_sync.core.database import get_db_session_context
from inventory_sync.core.logging import get_logger
from inventory_sync.core.redis_client import get_redis

settings = get_settings()
logger = get_logger(__name__)


async def check_postgresql() -> Dict[str, Any]:
    """
    Check PostgreSQL connection.

    Returns:
        Dict with status and details
    """
    try:
        async with get_db_session_context() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            return {
                "status": "healthy",
                "message": "PostgreSQL connection successful",
            }
    except Exception as e:
        logger.error(f"PostgreSQL health check failed: {e}", exc_info=True)
        return {
            "status": "unhealthy",
            "message": f"PostgreSQL connection failed: {str(e)}",
            "error": str(e),
        }


async def check_redis() -> Dict[str, Any]:
    """
    Check Redis connection.

    Redis only carries background refreshes, so an outage degrades the
    service instead of taking it down.
    """
    try:
        redis = await get_redis()
        if not redis:
            return {
                "status": "degraded",
                "message": "Redis client not available",
            }
        await redis.ping()
        return {
            "status": "healthy",
            "message": "Redis connection successful",
        }
    except Exception as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        return {
            "status": "degraded",
            "message": f"Redis connection failed: {str(e)}",
            "error": str(e),
        }


async def get_health_status() -> Dict[str, Any]:
    """
    Get aggregated health status for all components.

    Returns:
        Dict with overall status and component statuses
    """
    postgresql_status, redis_status = await asyncio.gather(
        check_postgresql(),
        check_redis(),
        return_exceptions=True,
    )

    if isinstance(postgresql_status, Exception):
        postgresql_status = {
            "status": "unhealthy",
            "message": f"PostgreSQL check raised exception: {str(postgresql_status)}",
        }

    if isinstance(redis_status, Exception):
        redis_status = {
            "status": "degraded",
            "message": f"Redis check raised exception: {str(redis_status)}",
        }

    component_statuses = [postgresql_status.get("status"), redis_status.get("status")]

    if all(status == "healthy" for status in component_statuses):
        overall_status = "healthy"
    elif any(status == "unhealthy" for status in component_statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return {
        "status": overall_status,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "components": {
            "postgresql": postgresql_status,
            "redis": redis_status,
        },
    }
