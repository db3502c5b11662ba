"""
Prometheus metrics integration for the inventory sync service.

Exports metrics in Prometheus format for monitoring and alerting.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

# Steam Community API Metrics
steam_api_requests_total = Counter(
    "inventory_sync_steam_api_requests_total",
    "Total Steam inventory page requests (one per attempt)",
    ["status_code"],  # HTTP status, or "transport_error"
)

steam_api_request_duration_seconds = Histogram(
    "inventory_sync_steam_api_request_duration_seconds",
    "Steam inventory request duration in seconds",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

steam_rate_limit_hits = Counter(
    "inventory_sync_steam_rate_limit_hits_total",
    "Total Steam rate limit responses (429)",
)

steam_api_retries_total = Counter(
    "inventory_sync_steam_api_retries_total",
    "Retries scheduled after a transient Steam failure",
    ["reason"],  # rate_limited, server_error, transport_error
)

# Sync Operations Metrics
sync_operations_total = Counter(
    "inventory_sync_operations_total",
    "Total sync operations by outcome",
    ["outcome"],  # success, cached, or an error code
)

sync_operation_duration_seconds = Histogram(
    "inventory_sync_operation_duration_seconds",
    "End-to-end sync duration in seconds",
    ["cached"],
    buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

sync_items_processed = Counter(
    "inventory_sync_items_processed_total",
    "Inventory items written to snapshots",
    ["match"],  # matched, unmatched
)


def get_metrics_response():
    """
    Get Prometheus metrics in text format.

    Returns:
        Tuple of (metrics_text, content_type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
