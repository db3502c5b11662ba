"""
Unit tests for SteamInventoryClient: pagination, retry and classification.
"""
import random
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock, call

import httpx
import pytest

from inventory_sync.models.sync import FetchFailure, FetchSuccess, SyncErrorCode
from inventory_sync.services.steam_inventory_client import SteamInventoryClient

STEAM_ID = "76561198000000001"


def fixed_rng(value: float) -> MagicMock:
    rng = MagicMock()
    rng.random.return_value = value
    return rng


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    sleep: AsyncMock,
    rng=None,
    **kwargs,
) -> SteamInventoryClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://steamcommunity.com",
    )
    return SteamInventoryClient(
        client=http_client,
        sleep=sleep,
        rng=rng or fixed_rng(0.0),
        max_retries=kwargs.pop("max_retries", 3),
        retry_delays=kwargs.pop("retry_delays", [2.0, 4.0, 8.0]),
        max_backoff=kwargs.pop("max_backoff", 30.0),
        pagination_delay=kwargs.pop("pagination_delay", 1.0),
        **kwargs,
    )


class RecordingHandler:
    """Replays a list of responses (or exceptions) and records requests."""

    def __init__(self, responses: List):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def sleep() -> AsyncMock:
    """Recorded stand-in for asyncio.sleep."""
    return AsyncMock()


async def test_fetch_single_page(sleep, make_page, make_description):
    """Test a one-page inventory is fetched with one request and no pause."""
    ak = make_description("100", "AK-47 | Redline (Field-Tested)")
    page = make_page([("1", ak), ("2", ak)])
    handler = RecordingHandler([httpx.Response(200, json=page)])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchSuccess)
    assert result.asset_count == 2
    assert result.total_count == 2
    assert len(result.pages[0].descriptions) == 1
    assert len(handler.requests) == 1

    request = handler.requests[0]
    assert request.url.path == f"/inventory/{STEAM_ID}/730/2"
    assert request.url.params["count"] == "2500"
    assert "start_assetid" not in request.url.params
    sleep.assert_not_awaited()


async def test_fetch_follows_cursor_and_pauses_between_pages(sleep, make_page, make_description):
    """Test pagination passes start_assetid and sleeps between pages."""
    ak = make_description("100", "AK-47 | Redline (Field-Tested)")
    awp = make_description("200", "AWP | Asiimov (Field-Tested)")
    first = make_page([("1", ak), ("2", ak)], more_items=True, total_inventory_count=3)
    second = make_page([("3", awp)], total_inventory_count=3)
    handler = RecordingHandler([
        httpx.Response(200, json=first),
        httpx.Response(200, json=second),
    ])
    client = make_client(handler, sleep, pagination_delay=1.0)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchSuccess)
    assert [len(p.assets) for p in result.pages] == [2, 1]
    assert result.total_count == 3
    assert handler.requests[1].url.params["start_assetid"] == "2"
    assert sleep.await_args_list == [call(1.0)]


async def test_fetch_total_count_defaults_to_assembled_assets(sleep, make_page, make_description):
    """Test total_count falls back to the asset count when Steam omits it."""
    page = make_page([("1", make_description("100", "P250 | Sand Dune (Field-Tested)"))])
    del page["total_inventory_count"]
    client = make_client(RecordingHandler([httpx.Response(200, json=page)]), sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchSuccess)
    assert result.total_count == 1


async def test_fetch_accepts_description_without_market_hash_name(sleep, make_page, make_description):
    """Test one incomplete description does not fail the whole page."""
    broken = make_description("200", "AWP | Asiimov (Field-Tested)")
    del broken["market_hash_name"]
    page = make_page([
        ("1", make_description("100", "P250 | Sand Dune (Field-Tested)")),
        ("2", broken),
    ])
    client = make_client(RecordingHandler([httpx.Response(200, json=page)]), sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchSuccess)
    assert result.asset_count == 2


async def test_fetch_recovers_after_server_error(sleep, make_page, make_description):
    """Test a 503 is retried and the next success is returned."""
    page = make_page([("1", make_description("100", "P250 | Sand Dune (Field-Tested)"))])
    handler = RecordingHandler([
        httpx.Response(503),
        httpx.Response(200, json=page),
    ])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchSuccess)
    assert len(handler.requests) == 2
    assert sleep.await_args_list == [call(1.0)]


async def test_fetch_private_inventory_is_not_retried(sleep):
    """Test 403 fails immediately as a private inventory."""
    handler = RecordingHandler([httpx.Response(403)])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.PRIVATE_INVENTORY
    assert result.attempts == 1
    assert len(handler.requests) == 1
    sleep.assert_not_awaited()


async def test_fetch_rate_limited_after_max_retries(sleep):
    """Test persistent 429 makes max_retries + 1 attempts with growing backoff."""
    handler = RecordingHandler([httpx.Response(429)])
    client = make_client(handler, sleep, max_retries=3)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.RATE_LIMITED
    assert result.attempts == 4
    assert len(handler.requests) == 4
    # jitter fixed at its lower bound: half of each base delay
    assert sleep.await_args_list == [call(1.0), call(2.0), call(4.0)]


async def test_fetch_network_error_after_max_retries(sleep):
    """Test persistent connection errors end as NETWORK_ERROR."""
    handler = RecordingHandler([httpx.ConnectError("connection refused")])
    client = make_client(handler, sleep, max_retries=2)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.NETWORK_ERROR
    assert result.attempts == 3
    assert len(handler.requests) == 3


async def test_fetch_timeout_is_retried(sleep, make_page, make_description):
    """Test a read timeout is treated as transient."""
    page = make_page([("1", make_description("100", "P250 | Sand Dune (Field-Tested)"))])
    handler = RecordingHandler([
        httpx.ReadTimeout("timed out"),
        httpx.Response(200, json=page),
    ])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchSuccess)
    assert len(handler.requests) == 2


async def test_fetch_server_error_exhausted_is_network_error(sleep):
    """Test repeated 5xx ends as NETWORK_ERROR carrying the status code."""
    handler = RecordingHandler([httpx.Response(502)])
    client = make_client(handler, sleep, max_retries=1)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.NETWORK_ERROR
    assert result.status_code == 502
    assert result.attempts == 2


async def test_fetch_other_client_errors_are_not_retried(sleep):
    """Test 404 fails once as EXTERNAL_API_ERROR."""
    handler = RecordingHandler([httpx.Response(404)])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.EXTERNAL_API_ERROR
    assert len(handler.requests) == 1


async def test_fetch_unparseable_body_is_invalid_response(sleep):
    """Test a non-JSON body is INVALID_RESPONSE and not retried."""
    handler = RecordingHandler([httpx.Response(200, content=b"<html>oops</html>")])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.INVALID_RESPONSE
    assert len(handler.requests) == 1


async def test_fetch_schema_violation_is_invalid_response(sleep):
    """Test a wrongly shaped payload is INVALID_RESPONSE."""
    handler = RecordingHandler([httpx.Response(200, json={"success": 1, "assets": "nope"})])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.INVALID_RESPONSE


async def test_fetch_application_error_in_ok_response(sleep):
    """Test success != 1 surfaces Steam's error text."""
    handler = RecordingHandler([
        httpx.Response(200, json={"success": 0, "error": "Malformed request"})
    ])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.EXTERNAL_API_ERROR
    assert result.message == "Malformed request"
    assert len(handler.requests) == 1


async def test_fetch_failure_on_later_page_discards_earlier_pages(sleep, make_page, make_description):
    """Test a failing second page fails the whole fetch."""
    first = make_page([("1", make_description("100", "P250 | Sand Dune (Field-Tested)"))], more_items=True)
    handler = RecordingHandler([
        httpx.Response(200, json=first),
        httpx.Response(403),
    ])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.PRIVATE_INVENTORY


async def test_fetch_repeated_cursor_stops_pagination(sleep, make_page, make_description):
    """Test a cursor that does not advance ends as INVALID_RESPONSE."""
    page = make_page(
        [("1", make_description("100", "P250 | Sand Dune (Field-Tested)"))],
        more_items=True,
        last_assetid="1",
    )
    handler = RecordingHandler([httpx.Response(200, json=page)])
    client = make_client(handler, sleep)

    result = await client.fetch_inventory(STEAM_ID)

    assert isinstance(result, FetchFailure)
    assert result.kind is SyncErrorCode.INVALID_RESPONSE
    assert len(handler.requests) == 2


def test_backoff_within_jitter_bounds():
    """Test every delay lies in [base/2, base]."""
    client = SteamInventoryClient(
        client=MagicMock(),
        retry_delays=[2.0, 4.0, 8.0],
        max_backoff=30.0,
        rng=random.Random(1234),
    )
    for _ in range(200):
        for n, base in enumerate([2.0, 4.0, 8.0]):
            delay = client.compute_backoff(n)
            assert 0.5 * base <= delay <= base


def test_backoff_reuses_last_base_delay():
    """Test retries past the table use its last entry."""
    client = SteamInventoryClient(
        client=MagicMock(),
        retry_delays=[2.0, 4.0],
        rng=fixed_rng(0.999),
    )
    assert client.compute_backoff(5) == pytest.approx(4.0 * (0.5 + 0.999 * 0.5))


def test_backoff_is_capped():
    """Test the delay never exceeds max_backoff."""
    client = SteamInventoryClient(
        client=MagicMock(),
        retry_delays=[120.0],
        max_backoff=30.0,
        rng=fixed_rng(0.5),
    )
    assert client.compute_backoff(0) == 30.0


async def test_injected_http_client_is_not_closed():
    """Test the caller keeps ownership of an injected client."""
    http_client = AsyncMock(spec=httpx.AsyncClient)

    async with SteamInventoryClient(client=http_client):
        pass

    http_client.aclose.assert_not_awaited()


async def test_owned_http_client_is_closed():
    """Test close() shuts a client the instance created itself."""
    client = SteamInventoryClient()

    await client.close()

    assert client.client.is_closed
