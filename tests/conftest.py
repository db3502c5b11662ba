"""
Pytest configuration and shared fixtures for inventory sync tests.
"""
import os

# Settings are read once at import time, so the environment must be in place
# before anything from inventory_sync is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-inventory-sync-tests")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Tuple

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from inventory_sync.models.inventory import Base, CatalogItem, MarketplacePrice, User


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine.

    StaticPool keeps a single connection so every session sees the same
    database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def add_user(session_factory):
    """Insert a row into the auth-owned users table."""

    async def _add_user(
        user_id: str = "user-1",
        steam_id: str = "76561198000000001",
        last_login: Optional[datetime] = None,
    ) -> User:
        user = User(
            id=user_id,
            steam_id=steam_id,
            persona_name="tester",
            last_login=last_login,
        )
        async with session_factory() as session:
            async with session.begin():
                session.add(user)
        return user

    return _add_user


@pytest.fixture
def add_catalog_item(session_factory):
    """Insert a catalog item with (platform, price, total_cost) offers."""

    async def _add_catalog_item(
        item_id: str,
        display_name: str,
        prices: Sequence[Tuple[str, str, str]] = (),
    ) -> CatalogItem:
        item = CatalogItem(id=item_id, name=display_name, display_name=display_name)
        async with session_factory() as session:
            async with session.begin():
                session.add(item)
                for platform, price, total_cost in prices:
                    session.add(
                        MarketplacePrice(
                            item_id=item_id,
                            platform=platform,
                            price=Decimal(price),
                            currency="USD",
                            total_cost=Decimal(total_cost),
                            last_updated=datetime.now(timezone.utc),
                        )
                    )
        return item

    return _add_catalog_item


def build_description(
    classid: str,
    market_hash_name: str,
    instanceid: str = "0",
    **overrides: Any,
) -> Dict[str, Any]:
    description = {
        "classid": classid,
        "instanceid": instanceid,
        "market_hash_name": market_hash_name,
        "name": market_hash_name,
        "type": "Rifle",
        "tradable": 1,
        "marketable": 1,
        "descriptions": [],
        "actions": [],
        "icon_url": f"icon-{classid}",
        "name_color": "D2D2D2",
    }
    description.update(overrides)
    return description


def build_page(
    items: Sequence[Tuple[str, Dict[str, Any]]],
    more_items: bool = False,
    last_assetid: Optional[str] = None,
    total_inventory_count: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Raw inventory page for (assetid, description) pairs.

    Descriptions shared by several assets are emitted once, as Steam does.
    """
    assets: List[Dict[str, Any]] = []
    descriptions: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for assetid, description in items:
        assets.append({
            "appid": 730,
            "contextid": "2",
            "assetid": assetid,
            "classid": description["classid"],
            "instanceid": description.get("instanceid", "0"),
            "amount": "1",
        })
        descriptions[(description["classid"], description.get("instanceid", "0"))] = description

    page: Dict[str, Any] = {
        "success": 1,
        "assets": assets,
        "descriptions": list(descriptions.values()),
        "total_inventory_count": (
            total_inventory_count if total_inventory_count is not None else len(assets)
        ),
    }
    if more_items:
        page["more_items"] = 1
        page["last_assetid"] = last_assetid or assets[-1]["assetid"]
    return page


@pytest.fixture
def make_description():
    return build_description


@pytest.fixture
def make_page():
    return build_page
