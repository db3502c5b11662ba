"""
Catalog matching: Steam market hash name -> catalog item + best current price.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from inventory_sync.models.inventory import CatalogItem, MarketplacePrice
from inventory_sync.models.sync import (
    CatalogEntry,
    CatalogMatch,
    MatchedItem,
    NormalizedInventoryItem,
    Unmatched,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class CatalogLookup(Protocol):
    """Batched name -> catalog entry lookup."""

    async def lookup(self, names: Sequence[str]) -> Dict[str, CatalogEntry]:
        ...


class SqlCatalogLookup:
    """
    Reads the catalog tables owned by the catalog service.

    One query for the whole batch: items outer-joined to their marketplace
    prices, cheapest total cost first. The first row seen for a name is its
    best offer; an item with no prices still matches, with no value.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def lookup(self, names: Sequence[str]) -> Dict[str, CatalogEntry]:
        if not names:
            return {}

        stmt = (
            select(
                CatalogItem.id,
                CatalogItem.display_name,
                MarketplacePrice.price,
                MarketplacePrice.platform,
            )
            .outerjoin(MarketplacePrice, MarketplacePrice.item_id == CatalogItem.id)
            .where(CatalogItem.display_name.in_(list(names)))
            .order_by(MarketplacePrice.total_cost.asc().nulls_last(), CatalogItem.id)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()

        entries: Dict[str, CatalogEntry] = {}
        for item_id, display_name, price, platform in rows:
            if display_name in entries:
                continue
            entries[display_name] = CatalogEntry(
                catalog_item_id=item_id,
                display_name=display_name,
                current_value=Decimal(price) if price is not None else None,
                best_platform=platform,
            )
        return entries


class CatalogMatcher:
    """Attaches a CatalogMatch or Unmatched to every normalized item."""

    def __init__(self, lookup: CatalogLookup):
        self.lookup = lookup

    async def match(self, items: Sequence[NormalizedInventoryItem]) -> List[MatchedItem]:
        """
        Match items against the catalog, preserving input order.

        Items are never dropped: names the catalog does not know come back
        as Unmatched so they are still stored, just without a value.
        """
        names = list(dict.fromkeys(item.market_hash_name for item in items))
        entries = await self.lookup.lookup(names) if names else {}

        matched: List[MatchedItem] = []
        for item in items:
            entry = entries.get(item.market_hash_name)
            if entry is None:
                matched.append(MatchedItem(item=item, match=Unmatched(raw_name=item.market_hash_name)))
            else:
                matched.append(
                    MatchedItem(
                        item=item,
                        match=CatalogMatch(
                            catalog_item_id=entry.catalog_item_id,
                            current_value=entry.current_value,
                            best_platform=entry.best_platform,
                        ),
                    )
                )

        unmatched = count_unmatched(matched)
        if unmatched:
            logger.info(f"{unmatched} of {len(matched)} items have no catalog entry")
        return matched


def total_value(matched: Iterable[MatchedItem]) -> Decimal:
    """Sum of current values over matched, priced items, rounded to cents."""
    total = sum(
        (m.current_value for m in matched if m.current_value is not None),
        Decimal("0"),
    )
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def count_unmatched(matched: Iterable[MatchedItem]) -> int:
    return sum(1 for m in matched if isinstance(m.match, Unmatched))
