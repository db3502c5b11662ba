"""
Domain types passed between the sync pipeline stages.

Every "may or may not" in the pipeline is an explicit variant:
a fetch is FetchSuccess | FetchFailure, a catalog match is
CatalogMatch | Unmatched. Callers dispatch with isinstance().
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from inventory_sync.models.inventory import SyncStatusEnum
from inventory_sync.models.steam import SteamInventoryPage

UNKNOWN_ITEM_NAME = "Unknown Item"


class SyncErrorCode(str, Enum):
    """Error codes surfaced to callers of InventorySyncService.sync()."""

    CONSENT_REQUIRED = "CONSENT_REQUIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PRIVATE_INVENTORY = "PRIVATE_INVENTORY"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    @property
    def sync_status(self) -> SyncStatusEnum:
        """Snapshot status recorded when a fetch fails with this code."""
        if self is SyncErrorCode.PRIVATE_INVENTORY:
            return SyncStatusEnum.PRIVATE
        if self is SyncErrorCode.RATE_LIMITED:
            return SyncStatusEnum.RATE_LIMITED
        return SyncStatusEnum.ERROR


class Wear(str, Enum):
    FACTORY_NEW = "factory_new"
    MINIMAL_WEAR = "minimal_wear"
    FIELD_TESTED = "field_tested"
    WELL_WORN = "well_worn"
    BATTLE_SCARRED = "battle_scarred"


class Quality(str, Enum):
    NORMAL = "normal"
    STATTRAK = "stattrak"
    SOUVENIR = "souvenir"


@dataclass(frozen=True)
class NormalizedInventoryItem:
    """One owned asset joined with its description."""

    asset_id: str
    market_hash_name: str
    is_tradable: bool = False
    is_marketable: bool = False
    custom_name: Optional[str] = None
    sticker_descriptions: Optional[List[str]] = None
    trade_hold_until: Optional[datetime] = None
    inspect_link: Optional[str] = None
    wear: Optional[Wear] = None
    quality: Optional[Quality] = None
    icon_url: Optional[str] = None
    rarity_color: Optional[str] = None
    described: bool = True


# Fetch outcome

@dataclass(frozen=True)
class FetchSuccess:
    """Every page of the inventory, in cursor order."""

    pages: List[SteamInventoryPage]
    total_count: int

    @property
    def asset_count(self) -> int:
        return sum(len(page.assets) for page in self.pages)


@dataclass(frozen=True)
class FetchFailure:
    kind: SyncErrorCode
    message: str
    attempts: int = 1
    status_code: Optional[int] = None


FetchResult = Union[FetchSuccess, FetchFailure]


# Catalog match outcome

@dataclass(frozen=True)
class CatalogEntry:
    """Catalog hit for one market hash name, with its best current offer."""

    catalog_item_id: str
    display_name: str
    current_value: Optional[Decimal] = None
    best_platform: Optional[str] = None


@dataclass(frozen=True)
class CatalogMatch:
    catalog_item_id: str
    current_value: Optional[Decimal] = None
    best_platform: Optional[str] = None


@dataclass(frozen=True)
class Unmatched:
    raw_name: str


CatalogMatchResult = Union[CatalogMatch, Unmatched]


@dataclass(frozen=True)
class MatchedItem:
    item: NormalizedInventoryItem
    match: CatalogMatchResult

    @property
    def catalog_item_id(self) -> Optional[str]:
        if isinstance(self.match, CatalogMatch):
            return self.match.catalog_item_id
        return None

    @property
    def current_value(self) -> Optional[Decimal]:
        if isinstance(self.match, CatalogMatch):
            return self.match.current_value
        return None

    @property
    def best_platform(self) -> Optional[str]:
        if isinstance(self.match, CatalogMatch):
            return self.match.best_platform
        return None


# Orchestration

@dataclass(frozen=True)
class UserIdentity:
    user_id: str
    steam_id: str
    last_login: Optional[datetime] = None


@dataclass(frozen=True)
class SyncOptions:
    # None means the caller did not say; only an explicit False blocks the sync
    consent_given: Optional[bool] = None
    force: bool = False


@dataclass(frozen=True)
class SnapshotAggregate:
    """Aggregate row values written together with the item set."""

    steam_id: str
    total_items: int
    total_value: Decimal
    synced_at: datetime
    consent_given: bool
    scheduled_delete: Optional[datetime] = None


@dataclass
class SyncResult:
    success: bool
    items_imported: Optional[int] = None
    total_value: Optional[Decimal] = None
    cached: Optional[bool] = None
    unmatched_items: Optional[int] = None
    error: Optional[SyncErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, error: SyncErrorCode, message: str) -> "SyncResult":
        return cls(success=False, error=error, message=message)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase payload for the HTTP layer; unset fields are omitted."""
        payload: Dict[str, Any] = {"success": self.success}
        if self.items_imported is not None:
            payload["itemsImported"] = self.items_imported
        if self.total_value is not None:
            payload["totalValue"] = float(self.total_value)
        if self.cached is not None:
            payload["cached"] = self.cached
        if self.unmatched_items is not None:
            payload["unmatchedItems"] = self.unmatched_items
        if self.error is not None:
            payload["error"] = self.error.value
        if self.message is not None:
            payload["message"] = self.message
        return payload
