"""
Inventory sync orchestration.

One call to InventorySyncService.sync() takes a user's snapshot through:

    consent check -> user lookup -> cache check -> Steam fetch
        -> join descriptions -> catalog match -> atomic snapshot swap

and always returns a SyncResult. Failures never raise out of sync().
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Iterable, List, Optional, Set

from sqlalchemy.ext.asyncio import async_sessionmaker

from inventory_sync.core.config import get_settings
from inventory_sync.core.exceptions import UserNotFoundError
from inventory_sync.core.logging import LogContext, log_performance
from inventory_sync.core.prometheus_metrics import (
    sync_items_processed,
    sync_operation_duration_seconds,
    sync_operations_total,
)
from inventory_sync.models.inventory import UserInventory
from inventory_sync.models.sync import (
    FetchFailure,
    NormalizedInventoryItem,
    SnapshotAggregate,
    SyncErrorCode,
    SyncOptions,
    SyncResult,
    UserIdentity,
)
from inventory_sync.services.asset_joiner import AssetDescriptionJoiner
from inventory_sync.services.catalog_matcher import (
    CatalogMatcher,
    SqlCatalogLookup,
    count_unmatched,
    total_value,
)
from inventory_sync.services.snapshot_store import InventorySnapshotStore
from inventory_sync.services.steam_inventory_client import SteamInventoryClient
from inventory_sync.services.user_resolver import SqlUserResolver, UserResolver

settings = get_settings()
logger = logging.getLogger(__name__)

CONSENT_REQUIRED_MESSAGE = "Consent is required before importing your Steam inventory"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InventorySyncService:
    """
    Entry point for syncing one user's inventory.

    Collaborators are injected so tests can swap the Steam client, the
    catalog lookup and the stores independently.
    """

    def __init__(
        self,
        user_resolver: UserResolver,
        snapshot_store: InventorySnapshotStore,
        fetch_client: SteamInventoryClient,
        matcher: CatalogMatcher,
        joiner: Optional[AssetDescriptionJoiner] = None,
        cache_ttl: Optional[timedelta] = None,
        retention: Optional[timedelta] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.user_resolver = user_resolver
        self.snapshot_store = snapshot_store
        self.fetch_client = fetch_client
        self.matcher = matcher
        self.joiner = joiner or AssetDescriptionJoiner(now=now)
        self.cache_ttl = cache_ttl or timedelta(hours=settings.INVENTORY_CACHE_TTL_HOURS)
        self.retention = retention or timedelta(days=settings.GDPR_RETENTION_DAYS)
        self._now = now

    async def sync(self, user_id: str, options: Optional[SyncOptions] = None) -> SyncResult:
        """
        Sync a user's inventory.

        Args:
            user_id: Internal user id
            options: Consent and force flags; defaults to no explicit consent
                and cache allowed

        Returns:
            SyncResult; ``error`` is set when ``success`` is False
        """
        options = options or SyncOptions()
        started = time.perf_counter()

        with LogContext(user_id=user_id, operation="inventory_sync"):
            result = await self._sync(user_id, options)

            if result.success:
                outcome = "cached" if result.cached else "success"
            else:
                outcome = result.error.value
            duration = time.perf_counter() - started
            sync_operations_total.labels(outcome=outcome).inc()
            sync_operation_duration_seconds.labels(
                cached="true" if result.cached else "false"
            ).observe(duration)
            log_performance(logger, "inventory_sync", duration, outcome=outcome, force=options.force)

        return result

    async def _sync(self, user_id: str, options: SyncOptions) -> SyncResult:
        if options.consent_given is False:
            logger.info("Sync refused: consent not given")
            return SyncResult.failure(SyncErrorCode.CONSENT_REQUIRED, CONSENT_REQUIRED_MESSAGE)

        try:
            user = await self.user_resolver.resolve(user_id)
            snapshot = await self.snapshot_store.get_snapshot(user_id)
        except UserNotFoundError as e:
            logger.warning(f"Sync requested for unknown user {user_id}")
            return SyncResult.failure(SyncErrorCode.USER_NOT_FOUND, e.detail)
        except Exception as e:
            logger.error(f"Failed to load user or snapshot for {user_id}: {e}", exc_info=True)
            return SyncResult.failure(SyncErrorCode.DATABASE_ERROR, "Failed to load inventory state")

        if not options.force and self._is_fresh(snapshot):
            logger.info(f"Serving cached inventory synced at {snapshot.last_synced}")
            return SyncResult(
                success=True,
                items_imported=snapshot.total_items,
                total_value=snapshot.total_value,
                cached=True,
            )

        try:
            fetched = await self.fetch_client.fetch_inventory(user.steam_id)
        except Exception as e:
            logger.error(f"Unexpected error fetching inventory for {user.steam_id}: {e}", exc_info=True)
            fetched = FetchFailure(
                kind=SyncErrorCode.NETWORK_ERROR,
                message=f"Unexpected error fetching inventory: {e}",
            )

        if isinstance(fetched, FetchFailure):
            await self._record_failure(
                user,
                fetched.kind,
                fetched.message,
                is_public=False if fetched.kind is SyncErrorCode.PRIVATE_INVENTORY else None,
            )
            return SyncResult.failure(fetched.kind, fetched.message)

        try:
            items = self._distinct_assets(
                item for page in fetched.pages for item in self.joiner.normalize(page)
            )
            matched = await self.matcher.match(items)
            value = total_value(matched)
            unmatched = count_unmatched(matched)

            aggregate = SnapshotAggregate(
                steam_id=user.steam_id,
                total_items=len(items),
                total_value=value,
                synced_at=self._now(),
                # An omitted flag counts as consent; an explicit refusal returned above
                consent_given=True,
                scheduled_delete=self._retention_deadline(user),
            )
            await self.snapshot_store.replace_snapshot(user_id, aggregate, matched)
        except Exception as e:
            logger.error(f"Failed to store inventory for {user_id}: {e}", exc_info=True)
            await self._record_failure(user, SyncErrorCode.DATABASE_ERROR, "Failed to save inventory")
            return SyncResult.failure(SyncErrorCode.DATABASE_ERROR, "Failed to save inventory")

        sync_items_processed.labels(match="matched").inc(len(items) - unmatched)
        sync_items_processed.labels(match="unmatched").inc(unmatched)
        if fetched.total_count != len(items):
            logger.warning(
                f"Steam reported {fetched.total_count} items but {len(items)} were returned"
            )

        return SyncResult(
            success=True,
            items_imported=len(items),
            total_value=value,
            cached=False,
            unmatched_items=unmatched,
        )

    @staticmethod
    def _distinct_assets(items: Iterable[NormalizedInventoryItem]) -> List[NormalizedInventoryItem]:
        """
        Drop repeated asset ids, keeping the first occurrence.

        An inventory that changes between page requests can return the
        boundary asset on two consecutive pages.
        """
        seen: Set[str] = set()
        distinct: List[NormalizedInventoryItem] = []
        duplicates = 0
        for item in items:
            if item.asset_id in seen:
                duplicates += 1
                continue
            seen.add(item.asset_id)
            distinct.append(item)

        if duplicates:
            logger.warning(f"Dropped {duplicates} repeated assets returned across inventory pages")
        return distinct

    def _is_fresh(self, snapshot: Optional[UserInventory]) -> bool:
        # Age of the last successful write, whatever the latest status is;
        # failed syncs never move last_synced.
        if snapshot is None or snapshot.last_synced is None:
            return False
        return self._now() - _as_utc(snapshot.last_synced) < self.cache_ttl

    def _retention_deadline(self, user: UserIdentity) -> Optional[datetime]:
        if user.last_login is None:
            return None
        return _as_utc(user.last_login) + self.retention

    async def _record_failure(
        self,
        user: UserIdentity,
        code: SyncErrorCode,
        message: str,
        is_public: Optional[bool] = None,
    ) -> None:
        """Best-effort status update; the original failure is what the caller sees."""
        try:
            await self.snapshot_store.record_failure(
                user.user_id,
                user.steam_id,
                code.sync_status,
                message,
                is_public=is_public,
            )
        except Exception as e:
            logger.error(f"Could not record {code.value} for {user.user_id}: {e}", exc_info=True)


@asynccontextmanager
async def open_inventory_sync_service(
    session_factory: async_sessionmaker,
    fetch_client: Optional[SteamInventoryClient] = None,
) -> AsyncIterator[InventorySyncService]:
    """
    Wire the service against the database, closing the Steam client on exit.

    Usage:
        async with open_inventory_sync_service(AsyncSessionLocal) as service:
            result = await service.sync(user_id)
    """
    client = fetch_client or SteamInventoryClient()
    try:
        yield InventorySyncService(
            user_resolver=SqlUserResolver(session_factory),
            snapshot_store=InventorySnapshotStore(session_factory),
            fetch_client=client,
            matcher=CatalogMatcher(SqlCatalogLookup(session_factory)),
        )
    finally:
        if fetch_client is None:
            await client.close()
