"""
Celery tasks for refreshing inventories outside the request cycle.
"""
import asyncio
import logging
from typing import Any, Dict

from inventory_sync.core.database import AsyncSessionLocal, pg_engine
from inventory_sync.core.exceptions import SteamAPIError, SteamRateLimitError
from inventory_sync.core.logging import LogContext, setup_logging
from inventory_sync.models.sync import SyncErrorCode, SyncOptions
from inventory_sync.services.inventory_sync_service import open_inventory_sync_service
from inventory_sync.tasks.celery_app import celery_app

setup_logging()

logger = logging.getLogger(__name__)

# Outcomes worth another attempt later; everything else is final
RETRYABLE_ERRORS = frozenset({SyncErrorCode.RATE_LIMITED, SyncErrorCode.NETWORK_ERROR})


def run_async(coro):
    """
    Run async code in a Celery task.

    asyncio.run() creates a fresh loop per task; pooled asyncpg connections
    are bound to the loop that opened them, so the engine pool is disposed
    before the loop closes.
    """
    async def _run():
        try:
            return await coro
        finally:
            await pg_engine.dispose()

    return asyncio.run(_run())


async def _refresh_inventory_async(user_id: str, force: bool) -> Dict[str, Any]:
    async with open_inventory_sync_service(AsyncSessionLocal) as service:
        result = await service.sync(user_id, SyncOptions(force=force))

    if not result.success and result.error in RETRYABLE_ERRORS:
        if result.error is SyncErrorCode.RATE_LIMITED:
            raise SteamRateLimitError(result.message, user_id=user_id)
        raise SteamAPIError(
            result.message,
            error_code=result.error.value,
            context={"user_id": user_id},
        )
    return result.to_dict()


@celery_app.task(bind=True, max_retries=5, default_retry_delay=120)
def refresh_inventory(self, user_id: str, force: bool = False) -> Dict[str, Any]:
    """
    Sync one user's inventory in the background.

    Args:
        user_id: Internal user id
        force: Bypass the cache window

    Returns:
        SyncResult as a camelCase dict. Non-retryable failures are returned,
        not raised, so they show up in the result backend.
    """
    with LogContext(trace_id=self.request.id, user_id=user_id):
        try:
            return run_async(_refresh_inventory_async(user_id, force))
        except SteamAPIError as e:
            countdown = min(1800, 120 * 2 ** self.request.retries)
            logger.warning(
                f"Inventory refresh for {user_id} hit {e.error_code}, "
                f"retrying in {countdown}s (attempt {self.request.retries + 1})"
            )
            raise self.retry(exc=e, countdown=countdown)
