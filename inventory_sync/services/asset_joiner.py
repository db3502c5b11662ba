"""
Join Steam assets with their shared descriptions.

Steam splits an inventory page into ``assets`` (what the user owns) and
``descriptions`` (what those things are), linked by (classid, instanceid).
"""
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from inventory_sync.models.steam import SteamAsset, SteamDescription, SteamInventoryPage
from inventory_sync.models.sync import (
    UNKNOWN_ITEM_NAME,
    NormalizedInventoryItem,
    Quality,
    Wear,
)

logger = logging.getLogger(__name__)

NAME_TAG_PATTERN = re.compile(r'Name Tag:\s*"(.+)"')
STICKER_PREFIX = "Sticker:"
INSPECT_ACTION_NAME = "Inspect in Game..."

WEAR_BY_LABEL = {
    "Factory New": Wear.FACTORY_NEW,
    "Minimal Wear": Wear.MINIMAL_WEAR,
    "Field-Tested": Wear.FIELD_TESTED,
    "Well-Worn": Wear.WELL_WORN,
    "Battle-Scarred": Wear.BATTLE_SCARRED,
}
WEAR_PATTERN = re.compile(
    r"\((" + "|".join(re.escape(label) for label in WEAR_BY_LABEL) + r")\)\s*$"
)

DescriptionKey = Tuple[str, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_wear(market_hash_name: str) -> Optional[Wear]:
    """Wear from the exterior suffix, e.g. ``AK-47 | Redline (Field-Tested)``."""
    match = WEAR_PATTERN.search(market_hash_name)
    if match:
        return WEAR_BY_LABEL[match.group(1)]
    return None


def parse_quality(market_hash_name: str) -> Quality:
    if "StatTrak™" in market_hash_name:
        return Quality.STATTRAK
    if market_hash_name.startswith("Souvenir "):
        return Quality.SOUVENIR
    return Quality.NORMAL


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Ignoring unparseable cache_expiration {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AssetDescriptionJoiner:
    """
    Turns one inventory page into NormalizedInventoryItem records.

    Exactly one item is produced per asset, in asset order. Assets without a
    matching description become placeholder items instead of being dropped,
    so the item count always equals the asset count.
    """

    def __init__(self, now: Callable[[], datetime] = _utcnow):
        self._now = now

    def normalize(self, page: SteamInventoryPage) -> List[NormalizedInventoryItem]:
        descriptions: Dict[DescriptionKey, SteamDescription] = {
            (d.classid, d.instanceid): d for d in page.descriptions
        }
        now = self._now()

        items: List[NormalizedInventoryItem] = []
        missing = 0
        for asset in page.assets:
            description = descriptions.get((asset.classid, asset.instanceid))
            if description is None:
                missing += 1
                items.append(self._placeholder(asset))
            else:
                items.append(self._join(asset, description, now))

        if missing:
            logger.warning(
                f"{missing} of {len(page.assets)} assets had no description; "
                f"stored as '{UNKNOWN_ITEM_NAME}'"
            )
        return items

    def _placeholder(self, asset: SteamAsset) -> NormalizedInventoryItem:
        return NormalizedInventoryItem(
            asset_id=asset.assetid,
            market_hash_name=UNKNOWN_ITEM_NAME,
            is_tradable=False,
            is_marketable=False,
            described=False,
        )

    def _join(
        self,
        asset: SteamAsset,
        description: SteamDescription,
        now: datetime,
    ) -> NormalizedInventoryItem:
        name = description.market_hash_name or UNKNOWN_ITEM_NAME
        return NormalizedInventoryItem(
            asset_id=asset.assetid,
            market_hash_name=name,
            is_tradable=description.tradable == 1,
            is_marketable=description.marketable == 1,
            custom_name=self._custom_name(description),
            sticker_descriptions=self._stickers(description),
            trade_hold_until=self._trade_hold(description, now),
            inspect_link=self._inspect_link(description),
            wear=parse_wear(name),
            quality=parse_quality(name),
            icon_url=description.icon_url,
            rarity_color=description.name_color,
        )

    @staticmethod
    def _custom_name(description: SteamDescription) -> Optional[str]:
        for warning in description.fraudwarnings:
            match = NAME_TAG_PATTERN.search(warning)
            if match:
                return match.group(1)
        if (
            description.name
            and description.market_hash_name
            and description.name != description.market_hash_name
        ):
            return description.name
        return None

    @staticmethod
    def _stickers(description: SteamDescription) -> Optional[List[str]]:
        stickers = [
            line.value[len(STICKER_PREFIX):].strip()
            for line in description.descriptions
            if line.value.startswith(STICKER_PREFIX)
        ]
        return stickers or None

    @staticmethod
    def _trade_hold(description: SteamDescription, now: datetime) -> Optional[datetime]:
        # Tradable items carry no hold even if Steam sends an expiration
        if description.tradable != 0:
            return None
        expires = parse_timestamp(description.cache_expiration)
        if expires is not None and expires > now:
            return expires
        return None

    @staticmethod
    def _inspect_link(description: SteamDescription) -> Optional[str]:
        for action in description.actions:
            if action.name == INSPECT_ACTION_NAME:
                return action.link
        return None
