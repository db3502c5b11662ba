"""
Celery application configuration for background inventory refreshes.
"""
from celery import Celery

from inventory_sync.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "inventory_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["inventory_sync.tasks.sync_tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Queue configuration
    task_routes={
        "inventory_sync.tasks.sync_tasks.refresh_inventory": {"queue": "inventory-sync"},
    },
    task_default_queue="default",

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # A full 4-page inventory with every retry exhausted stays well under this
    task_time_limit=600,
    task_soft_time_limit=540,

    # Retry settings (Steam rate limits clear in minutes, not seconds)
    task_default_retry_delay=120,
    task_max_retries=5,

    # Result backend
    result_expires=3600,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

celery_app.conf.task_queues = {
    "inventory-sync": {
        "exchange": "inventory-sync",
        "routing_key": "inventory-sync",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}
