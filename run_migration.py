#!/usr/bin/env python3
"""
Create the inventory sync tables (user_inventories, inventory_items).

Collaborator tables (users, items, marketplace_prices) are created as well
when missing, which is what a fresh local database needs.
"""
import asyncio
import sys

from inventory_sync.core.config import get_settings
from inventory_sync.core.database import close_db, init_db
from inventory_sync.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_migration() -> None:
    settings = get_settings()
    database = settings.DATABASE_URL.split("@")[-1] if "@" in settings.DATABASE_URL else "N/A"
    logger.info(f"Creating tables on {database}")
    try:
        await init_db()
    finally:
        await close_db()


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(run_migration())
    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        sys.exit(1)
    logger.info("Migration completed")
