"""
API endpoints for the user's Steam inventory.
"""
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from inventory_sync.api.dependencies import get_current_user_id
from inventory_sync.api.v1.schemas import (
    InventoryItemResponse,
    InventoryResponse,
    SyncInventoryRequest,
    SyncResultResponse,
)
from inventory_sync.core.database import AsyncSessionLocal
from inventory_sync.core.exceptions import SnapshotNotFoundError
from inventory_sync.models.inventory import InventoryItem
from inventory_sync.models.sync import SyncErrorCode, SyncOptions
from inventory_sync.services.inventory_sync_service import (
    InventorySyncService,
    open_inventory_sync_service,
)
from inventory_sync.services.snapshot_store import InventorySnapshotStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/inventory", tags=["inventory"])

ERROR_STATUS = {
    SyncErrorCode.CONSENT_REQUIRED: status.HTTP_400_BAD_REQUEST,
    SyncErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    SyncErrorCode.PRIVATE_INVENTORY: status.HTTP_403_FORBIDDEN,
    SyncErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    SyncErrorCode.EXTERNAL_API_ERROR: status.HTTP_502_BAD_GATEWAY,
    SyncErrorCode.INVALID_RESPONSE: status.HTTP_502_BAD_GATEWAY,
}


async def get_inventory_sync_service() -> AsyncIterator[InventorySyncService]:
    async with open_inventory_sync_service(AsyncSessionLocal) as service:
        yield service


def get_snapshot_store() -> InventorySnapshotStore:
    return InventorySnapshotStore(AsyncSessionLocal)


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _item_response(item: InventoryItem) -> InventoryItemResponse:
    return InventoryItemResponse(
        id=item.id,
        steam_asset_id=item.steam_asset_id,
        market_hash_name=item.market_hash_name,
        catalog_item_id=item.item_id,
        custom_name=item.custom_name,
        wear=item.wear,
        quality=item.quality,
        stickers=item.stickers,
        can_trade=item.can_trade,
        trade_hold_until=_isoformat(item.trade_hold_until),
        current_value=float(item.current_value) if item.current_value is not None else None,
        best_platform=item.best_platform,
        icon_url=item.icon_url,
        inspect_link=item.inspect_link,
        rarity_color=item.rarity_color,
    )


@router.post(
    "/sync",
    response_model=SyncResultResponse,
    responses={
        400: {"model": SyncResultResponse, "description": "Consent required"},
        403: {"model": SyncResultResponse, "description": "Steam inventory is private"},
        404: {"model": SyncResultResponse, "description": "User not found"},
        429: {"model": SyncResultResponse, "description": "Steam rate limit exceeded"},
        502: {"model": SyncResultResponse, "description": "Steam returned an unusable response"},
    },
)
async def sync_inventory(
    request: Optional[SyncInventoryRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    service: InventorySyncService = Depends(get_inventory_sync_service),
) -> JSONResponse:
    """
    Import the caller's Steam inventory.

    A snapshot younger than the cache window is returned without contacting
    Steam unless ``force`` is set.
    """
    request = request or SyncInventoryRequest()
    result = await service.sync(
        user_id,
        SyncOptions(consent_given=request.consent_given, force=request.force),
    )

    if result.success:
        status_code = status.HTTP_200_OK
    else:
        status_code = ERROR_STATUS.get(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR)
        logger.info(f"Inventory sync for {user_id} failed with {result.error.value}")

    return JSONResponse(status_code=status_code, content=result.to_dict())


@router.get("", response_model=InventoryResponse)
async def get_inventory(
    user_id: str = Depends(get_current_user_id),
    store: InventorySnapshotStore = Depends(get_snapshot_store),
) -> InventoryResponse:
    """
    Get the caller's stored inventory snapshot.

    Returns:
        Aggregates plus the 100 most valuable items

    Raises:
        SnapshotNotFoundError: The user has never synced
    """
    snapshot = await store.get_snapshot(user_id)
    if snapshot is None:
        raise SnapshotNotFoundError(user_id)

    items = await store.list_items(snapshot.id)

    return InventoryResponse(
        user_id=snapshot.user_id,
        steam_id=snapshot.steam_id,
        total_items=snapshot.total_items,
        total_value=float(snapshot.total_value),
        last_synced=_isoformat(snapshot.last_synced),
        sync_status=snapshot.sync_status,
        is_public=snapshot.is_public,
        error_message=snapshot.error_message,
        items=[_item_response(item) for item in items],
    )
