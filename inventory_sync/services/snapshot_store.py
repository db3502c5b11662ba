"""
Persistence boundary for inventory snapshots.

A snapshot is the ``user_inventories`` aggregate row plus its
``inventory_items``. A successful sync replaces both in one transaction; a
failed sync only touches the aggregate's status fields.
"""
import asyncio
import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inventory_sync.core.config import get_settings
from inventory_sync.core.exceptions import DatabaseError
from inventory_sync.models.inventory import (
    InventoryItem,
    SyncStatusEnum,
    UserInventory,
)
from inventory_sync.models.sync import MatchedItem, SnapshotAggregate

settings = get_settings()
logger = logging.getLogger(__name__)

DEFAULT_ITEM_LIMIT = 100


def _to_record(inventory_id: int, matched: MatchedItem) -> InventoryItem:
    item = matched.item
    return InventoryItem(
        inventory_id=inventory_id,
        item_id=matched.catalog_item_id,
        steam_asset_id=item.asset_id,
        market_hash_name=item.market_hash_name,
        custom_name=item.custom_name,
        wear=item.wear.value if item.wear else None,
        quality=item.quality.value if item.quality else None,
        stickers=item.sticker_descriptions,
        can_trade=item.is_tradable,
        trade_hold_until=item.trade_hold_until,
        current_value=matched.current_value,
        best_platform=matched.best_platform,
        icon_url=item.icon_url,
        inspect_link=item.inspect_link,
        rarity_color=item.rarity_color,
    )


class InventorySnapshotStore:
    """
    Reads and writes snapshots through short-lived sessions.

    Each public method opens its own session so that a write is exactly one
    transaction and never shares state with the caller's reads.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        transaction_timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.transaction_timeout = (
            settings.DB_TRANSACTION_TIMEOUT if transaction_timeout is None else transaction_timeout
        )

    @staticmethod
    async def _load(session: AsyncSession, user_id: str) -> Optional[UserInventory]:
        stmt = select(UserInventory).where(UserInventory.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_snapshot(self, user_id: str) -> Optional[UserInventory]:
        """Aggregate row for a user, or None if they never synced."""
        try:
            async with self.session_factory() as session:
                return await self._load(session, user_id)
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load inventory snapshot: {e}",
                operation="get_snapshot",
                context={"user_id": user_id},
            ) from e

    async def list_items(
        self,
        inventory_id: int,
        limit: int = DEFAULT_ITEM_LIMIT,
    ) -> List[InventoryItem]:
        """Most valuable items first; unpriced items last."""
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.inventory_id == inventory_id)
            .order_by(InventoryItem.current_value.desc().nulls_last(), InventoryItem.id)
            .limit(limit)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load inventory items: {e}",
                operation="list_items",
                context={"inventory_id": inventory_id},
            ) from e

    async def replace_snapshot(
        self,
        user_id: str,
        aggregate: SnapshotAggregate,
        items: Sequence[MatchedItem],
    ) -> UserInventory:
        """
        Atomically swap the user's snapshot.

        Upserts the aggregate row, deletes the previous items and inserts the
        new ones in a single transaction bounded by ``transaction_timeout``.
        On any failure the transaction is rolled back, the previous snapshot
        is left exactly as it was, and DatabaseError is raised.
        """
        try:
            inventory = await asyncio.wait_for(
                self._replace(user_id, aggregate, items),
                timeout=self.transaction_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                f"Snapshot replace for user {user_id} exceeded {self.transaction_timeout}s; rolled back"
            )
            raise DatabaseError(
                f"Inventory transaction timed out after {self.transaction_timeout}s",
                operation="replace_snapshot",
                context={"user_id": user_id},
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Snapshot replace for user {user_id} failed; rolled back: {e}")
            raise DatabaseError(
                f"Failed to save inventory: {e}",
                operation="replace_snapshot",
                context={"user_id": user_id},
            ) from e

        logger.info(
            f"Stored snapshot for user {user_id}: {aggregate.total_items} items, "
            f"total value {aggregate.total_value}"
        )
        return inventory

    async def _replace(
        self,
        user_id: str,
        aggregate: SnapshotAggregate,
        items: Sequence[MatchedItem],
    ) -> UserInventory:
        async with self.session_factory() as session:
            async with session.begin():
                inventory = await self._load(session, user_id)
                if inventory is None:
                    inventory = UserInventory(user_id=user_id, steam_id=aggregate.steam_id)
                    session.add(inventory)

                inventory.steam_id = aggregate.steam_id
                inventory.total_items = aggregate.total_items
                inventory.total_value = aggregate.total_value
                inventory.last_synced = aggregate.synced_at
                inventory.sync_status = SyncStatusEnum.SUCCESS.value
                inventory.error_message = None
                inventory.is_public = True
                inventory.scheduled_delete = aggregate.scheduled_delete
                inventory.consent_given = inventory.consent_given or aggregate.consent_given
                if aggregate.consent_given and inventory.consent_date is None:
                    inventory.consent_date = aggregate.synced_at
                await session.flush()

                await session.execute(
                    delete(InventoryItem).where(InventoryItem.inventory_id == inventory.id)
                )
                session.add_all([_to_record(inventory.id, matched) for matched in items])
                await session.flush()
            return inventory

    async def record_failure(
        self,
        user_id: str,
        steam_id: str,
        status: SyncStatusEnum,
        message: str,
        is_public: Optional[bool] = None,
    ) -> UserInventory:
        """
        Record a failed sync on the aggregate row.

        Item records, totals and ``last_synced`` are not touched. ``is_public``
        of None keeps the stored flag. A user with no snapshot yet gets an
        empty row carrying the failure status.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    inventory = await self._load(session, user_id)
                    if inventory is None:
                        inventory = UserInventory(
                            user_id=user_id,
                            steam_id=steam_id,
                            total_items=0,
                            total_value=Decimal("0.00"),
                        )
                        session.add(inventory)
                    inventory.sync_status = status.value
                    inventory.error_message = message
                    if is_public is not None:
                        inventory.is_public = is_public
                return inventory
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to record sync failure: {e}",
                operation="record_failure",
                context={"user_id": user_id, "status": status.value},
            ) from e
