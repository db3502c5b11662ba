"""
Steam Community inventory client with pagination, retry and error classification.

Steam specifics this client is shaped around:
- Endpoint: /inventory/{steamid}/730/2 (IEconItems_730 is gone for good)
- The practical rate ceiling is a handful of requests per minute, far below
  anything documented, so pages are fetched sequentially with a pause.
- Pages hold at most 2500 assets; ``last_assetid`` is the cursor.
- 403 means private inventory. Retrying it escalates to IP-level blocks, so
  it is never retried.
"""
import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, List, Optional, Union

import httpx
from pydantic import ValidationError

from inventory_sync.core.config import get_settings
from inventory_sync.core.prometheus_metrics import (
    steam_api_request_duration_seconds,
    steam_api_requests_total,
    steam_api_retries_total,
    steam_rate_limit_hits,
)
from inventory_sync.models.steam import SteamInventoryPage
from inventory_sync.models.sync import (
    FetchFailure,
    FetchResult,
    FetchSuccess,
    SyncErrorCode,
)

settings = get_settings()
logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

PRIVATE_INVENTORY_MESSAGE = (
    "This Steam inventory is private. Set your inventory to public in your "
    "Steam privacy settings and try again."
)
RATE_LIMITED_MESSAGE = "Steam rate limit exceeded. Please try again in a few minutes."


class SteamInventoryClient:
    """Fetches a complete CS2 inventory, page by page."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delays: Optional[List[float]] = None,
        max_backoff: Optional[float] = None,
        pagination_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the inventory client.

        Args:
            base_url: Steam Community base URL
            max_retries: Retries per page after the first attempt
            retry_delays: Base backoff delay (seconds) per retry; the last
                entry is reused when there are more retries than entries
            max_backoff: Ceiling for a single backoff delay (seconds)
            pagination_delay: Pause between page requests (seconds)
            timeout: Per-attempt timeout (seconds)
            page_size: Assets requested per page
            client: Preconfigured httpx client (tests inject a mock transport)
            sleep: Awaitable used for every delay
            rng: Jitter source
        """
        self.base_url = base_url or settings.STEAM_COMMUNITY_BASE_URL
        self.max_retries = settings.STEAM_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delays = list(retry_delays or settings.STEAM_RETRY_DELAYS)
        self.max_backoff = (
            settings.STEAM_MAX_BACKOFF_SECONDS if max_backoff is None else max_backoff
        )
        self.pagination_delay = (
            settings.STEAM_PAGINATION_DELAY if pagination_delay is None else pagination_delay
        )
        self.page_size = page_size or settings.STEAM_PAGE_SIZE
        self._sleep = sleep
        self._rng = rng or random.Random()

        request_timeout = timeout or settings.STEAM_REQUEST_TIMEOUT
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(request_timeout, connect=10.0),
            headers={"Accept": "application/json"},
        )

    def _inventory_path(self, steam_id: str) -> str:
        return f"/inventory/{steam_id}/{settings.STEAM_APP_ID}/{settings.STEAM_CONTEXT_ID}"

    def compute_backoff(self, retry_index: int) -> float:
        """
        Delay before retry number ``retry_index`` (0-based).

        base * U[0.5, 1.0), capped at max_backoff. Jitter spreads retries
        from many clients instead of having them all hit Steam at once.
        """
        base = self.retry_delays[min(retry_index, len(self.retry_delays) - 1)]
        jitter = 0.5 + self._rng.random() * 0.5
        return min(self.max_backoff, base * jitter)

    async def _backoff(self, retry_index: int, reason: str, steam_id: str) -> None:
        delay = self.compute_backoff(retry_index)
        steam_api_retries_total.labels(reason=reason).inc()
        logger.warning(
            f"Steam inventory request for {steam_id} failed ({reason}), "
            f"retry {retry_index + 1}/{self.max_retries} in {delay:.2f}s"
        )
        await self._sleep(delay)

    async def _fetch_page(
        self,
        steam_id: str,
        cursor: Optional[str],
    ) -> Union[SteamInventoryPage, FetchFailure]:
        """
        Fetch one page, retrying transient failures.

        Returns the parsed page or a FetchFailure; expected failure modes
        never raise.
        """
        params = {"l": "english", "count": self.page_size}
        if cursor:
            params["start_assetid"] = cursor

        retry_index = 0
        while True:
            attempts = retry_index + 1
            retries_left = retry_index < self.max_retries

            started = time.perf_counter()
            try:
                response = await self.client.get(self._inventory_path(steam_id), params=params)
            except httpx.RequestError as e:
                steam_api_requests_total.labels(status_code="transport_error").inc()
                if retries_left:
                    await self._backoff(retry_index, "transport_error", steam_id)
                    retry_index += 1
                    continue
                logger.error(f"Network error fetching inventory for {steam_id}: {e!r}")
                return FetchFailure(
                    kind=SyncErrorCode.NETWORK_ERROR,
                    message=f"Network error: {e}",
                    attempts=attempts,
                )
            finally:
                steam_api_request_duration_seconds.observe(time.perf_counter() - started)

            status = response.status_code
            steam_api_requests_total.labels(status_code=str(status)).inc()

            if status == 403:
                logger.info(f"Steam inventory {steam_id} is private (403)")
                return FetchFailure(
                    kind=SyncErrorCode.PRIVATE_INVENTORY,
                    message=PRIVATE_INVENTORY_MESSAGE,
                    attempts=attempts,
                    status_code=status,
                )

            if status == 429:
                steam_rate_limit_hits.inc()
                if retries_left:
                    await self._backoff(retry_index, "rate_limited", steam_id)
                    retry_index += 1
                    continue
                logger.error(
                    f"Steam rate limit persisted after {attempts} attempts for {steam_id}"
                )
                return FetchFailure(
                    kind=SyncErrorCode.RATE_LIMITED,
                    message=RATE_LIMITED_MESSAGE,
                    attempts=attempts,
                    status_code=status,
                )

            if 500 <= status < 600:
                if retries_left:
                    await self._backoff(retry_index, "server_error", steam_id)
                    retry_index += 1
                    continue
                logger.error(f"Steam returned {status} after {attempts} attempts for {steam_id}")
                return FetchFailure(
                    kind=SyncErrorCode.NETWORK_ERROR,
                    message=f"Steam API returned status {status}",
                    attempts=attempts,
                    status_code=status,
                )

            if not response.is_success:
                logger.error(f"Unexpected Steam status {status} for {steam_id}")
                return FetchFailure(
                    kind=SyncErrorCode.EXTERNAL_API_ERROR,
                    message=f"Steam API returned status {status}",
                    attempts=attempts,
                    status_code=status,
                )

            return self._parse_page(response, attempts)

    def _parse_page(
        self,
        response: httpx.Response,
        attempts: int,
    ) -> Union[SteamInventoryPage, FetchFailure]:
        """Validate a 200 body. Contract violations are not retried."""
        try:
            payload = response.json()
        except ValueError:
            return FetchFailure(
                kind=SyncErrorCode.INVALID_RESPONSE,
                message="Failed to parse JSON response from Steam API",
                attempts=attempts,
                status_code=response.status_code,
            )

        if not isinstance(payload, dict):
            return FetchFailure(
                kind=SyncErrorCode.INVALID_RESPONSE,
                message="Steam API response is not a JSON object",
                attempts=attempts,
                status_code=response.status_code,
            )

        try:
            page = SteamInventoryPage.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Steam inventory payload failed validation: {e}")
            return FetchFailure(
                kind=SyncErrorCode.INVALID_RESPONSE,
                message=f"Unexpected Steam API response shape ({e.error_count()} errors)",
                attempts=attempts,
                status_code=response.status_code,
            )

        if page.success != 1:
            return FetchFailure(
                kind=SyncErrorCode.EXTERNAL_API_ERROR,
                message=page.error or "Steam API returned an error",
                attempts=attempts,
                status_code=response.status_code,
            )

        return page

    async def fetch_inventory(self, steam_id: str) -> FetchResult:
        """
        Fetch every page of a user's inventory.

        Args:
            steam_id: SteamID64 of the inventory owner

        Returns:
            FetchSuccess with all pages in cursor order, or the FetchFailure
            of the first page that could not be fetched.
        """
        pages: List[SteamInventoryPage] = []
        cursor: Optional[str] = None
        total_count: Optional[int] = None

        while True:
            if pages:
                await self._sleep(self.pagination_delay)

            outcome = await self._fetch_page(steam_id, cursor)
            if isinstance(outcome, FetchFailure):
                logger.warning(
                    f"Inventory fetch for {steam_id} failed on page {len(pages) + 1}: "
                    f"{outcome.kind.value} after {outcome.attempts} attempt(s)"
                )
                return outcome

            pages.append(outcome)
            if outcome.total_inventory_count is not None:
                total_count = outcome.total_inventory_count

            next_cursor = outcome.next_cursor
            if next_cursor is None:
                break
            if next_cursor == cursor:
                return FetchFailure(
                    kind=SyncErrorCode.INVALID_RESPONSE,
                    message=f"Steam API repeated pagination cursor {cursor}",
                )
            cursor = next_cursor

        asset_count = sum(len(page.assets) for page in pages)
        result = FetchSuccess(
            pages=pages,
            total_count=total_count if total_count is not None else asset_count,
        )

        logger.info(
            f"Fetched inventory for {steam_id}: {result.asset_count} assets "
            f"across {len(pages)} page(s)"
        )
        return result

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
