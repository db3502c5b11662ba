"""
Pydantic models for the Steam Community inventory endpoint.

GET https://steamcommunity.com/inventory/{steamid}/730/2?count=2500[&start_assetid=...]

Assets are owned instances; descriptions are shared per (classid, instanceid)
and joined back onto assets by AssetDescriptionJoiner. Unknown fields are
ignored so additive API changes do not break parsing.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SteamAsset(BaseModel):
    """One owned item instance."""
    assetid: str
    classid: str
    instanceid: str = "0"
    amount: str = "1"
    appid: Optional[int] = None
    contextid: Optional[str] = None


class SteamDescriptionLine(BaseModel):
    """Free-form annotation line (stickers, exterior, charms...)."""
    value: str = ""
    type: Optional[str] = None
    color: Optional[str] = None
    name: Optional[str] = None


class SteamAction(BaseModel):
    name: str
    link: str


class SteamDescription(BaseModel):
    """Shared metadata for every asset with the same classid/instanceid."""
    classid: str
    instanceid: str = "0"
    market_hash_name: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    tradable: int = 0
    marketable: int = 0
    cache_expiration: Optional[str] = Field(
        default=None,
        description="ISO timestamp when a trade-locked item becomes tradable",
    )
    descriptions: List[SteamDescriptionLine] = Field(default_factory=list)
    actions: List[SteamAction] = Field(default_factory=list)
    fraudwarnings: List[str] = Field(default_factory=list)
    icon_url: Optional[str] = None
    name_color: Optional[str] = None

    @field_validator("descriptions", "actions", "fraudwarnings", mode="before")
    @classmethod
    def null_to_empty(cls, v):
        return [] if v is None else v


class SteamInventoryPage(BaseModel):
    """One page of the inventory response."""
    success: int = 1
    assets: List[SteamAsset] = Field(default_factory=list)
    descriptions: List[SteamDescription] = Field(default_factory=list)
    total_inventory_count: Optional[int] = None
    more_items: Optional[int] = None
    last_assetid: Optional[str] = None
    error: Optional[str] = None

    @property
    def next_cursor(self) -> Optional[str]:
        """Cursor for the following page, or None on the last page."""
        if self.more_items == 1 and self.last_assetid:
            return self.last_assetid
        return None
