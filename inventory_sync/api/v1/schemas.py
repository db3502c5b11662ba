"""
Pydantic schemas for API request/response models.

Request and sync-result bodies use camelCase on the wire to match the web
client; inventory read models keep the column names.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


# Request Schemas

class SyncInventoryRequest(BaseModel):
    """Request schema for triggering an inventory sync."""

    consent_given: Optional[bool] = Field(
        None,
        alias="consentGiven",
        description="Explicit privacy consent. false blocks the sync; omitted means not asked",
        examples=[True],
    )
    force: bool = Field(
        False,
        description="Bypass the 6 hour cache and fetch from Steam",
        examples=[False],
    )

    class Config:
        """Pydantic config."""
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "consentGiven": True,
                "force": False,
            }
        }


# Response Schemas

class SyncResultResponse(BaseModel):
    """Outcome of one sync call. Error responses carry the same shape."""

    success: bool = Field(..., description="Whether the sync produced a usable snapshot")
    items_imported: Optional[int] = Field(None, alias="itemsImported")
    total_value: Optional[float] = Field(None, alias="totalValue")
    cached: Optional[bool] = Field(None, description="True when served from the stored snapshot")
    unmatched_items: Optional[int] = Field(None, alias="unmatchedItems")
    error: Optional[str] = Field(None, description="Error code when success is false")
    message: Optional[str] = Field(None, description="Human-readable error message")

    class Config:
        """Pydantic config."""
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "success": True,
                "itemsImported": 3,
                "totalValue": 53.87,
                "cached": False,
                "unmatchedItems": 0,
            }
        }


class InventoryItemResponse(BaseModel):
    """Response schema for one stored inventory item."""

    id: int = Field(..., description="Item record ID")
    steam_asset_id: str = Field(..., description="Steam asset ID")
    market_hash_name: str = Field(..., description="Steam market hash name")
    catalog_item_id: Optional[str] = Field(None, description="Catalog item ID; null when unmatched")
    custom_name: Optional[str] = Field(None, description="Name tag, if any")
    wear: Optional[str] = Field(None, description="Exterior wear")
    quality: Optional[str] = Field(None, description="normal, stattrak or souvenir")
    stickers: Optional[List[str]] = Field(None, description="Applied sticker descriptions")
    can_trade: bool = Field(..., description="Whether the item is tradable now")
    trade_hold_until: Optional[str] = Field(None, description="Trade hold expiry (ISO format)")
    current_value: Optional[float] = Field(None, description="Best current marketplace price")
    best_platform: Optional[str] = Field(None, description="Marketplace offering the best price")
    icon_url: Optional[str] = Field(None, description="Steam economy image path")
    inspect_link: Optional[str] = Field(None, description="Steam inspect-in-game link")
    rarity_color: Optional[str] = Field(None, description="Rarity name color (hex, no #)")

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "id": 1,
                "steam_asset_id": "12345",
                "market_hash_name": "AK-47 | Redline (Field-Tested)",
                "catalog_item_id": "ak47-redline-ft",
                "custom_name": None,
                "wear": "field_tested",
                "quality": "normal",
                "stickers": None,
                "can_trade": True,
                "trade_hold_until": None,
                "current_value": 8.5,
                "best_platform": "csfloat",
                "icon_url": "-9a81dlWLwJ2UUGcVs_nsVtzdOEdtWwKGZZLQHTxDZ7I56KU0Zwwo4NUX4oFJZEHLbXH5ApeO4YmlhxYQknCRvCo04DEVlxkKgpot7HxfDhjxszJemkV09-5lpKKqPrxN7LEmyVQ7MEpiLuSrYmnjQO3-UdsZGHyd4_Bd1RvNQ7T_FDrw-_ng5Pu75iY1zI97bhLsvQz",
                "inspect_link": "steam://rungame/730/76561202255233023/+csgo_econ_action_preview%20S76561198000000001A12345D7200000000000000000",
                "rarity_color": "D2D2D2",
            }
        }


class InventoryResponse(BaseModel):
    """Stored snapshot with its most valuable items."""

    user_id: str = Field(..., description="User ID")
    steam_id: str = Field(..., description="SteamID64")
    total_items: int = Field(..., description="Number of items in the snapshot")
    total_value: float = Field(..., description="Sum of matched, priced item values")
    last_synced: Optional[str] = Field(None, description="Last successful sync (ISO format)")
    sync_status: str = Field(..., description="success, private, rate_limited or error")
    is_public: bool = Field(..., description="Whether the Steam inventory was public at last check")
    error_message: Optional[str] = Field(None, description="Last sync error, if any")
    items: List[InventoryItemResponse] = Field(..., description="Items, most valuable first")

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "user_id": "user-1",
                "steam_id": "76561198000000001",
                "total_items": 3,
                "total_value": 53.87,
                "last_synced": "2026-02-19T10:00:00+00:00",
                "sync_status": "success",
                "is_public": True,
                "error_message": None,
                "items": [],
            }
        }
