"""
SQLAlchemy models for the inventory sync database tables.

``user_inventories`` and ``inventory_items`` are owned by this service.
``users``, ``items`` and ``marketplace_prices`` are owned by the auth and
catalog services; they are mapped here for read access only.
"""
import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# SQLite only auto-assigns INTEGER primary keys
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class SyncStatusEnum(enum.Enum):
    """Outcome of the most recent sync attempt."""
    SUCCESS = "success"
    PRIVATE = "private"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"

    def __str__(self):
        return self.value


# Read-only collaborator tables

class User(Base):
    """Signed-in user, written by the Steam OpenID login flow."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    steam_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="SteamID64 used as the inventory endpoint key"
    )
    persona_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        comment="Last user activity; drives the GDPR retention window"
    )


class CatalogItem(Base):
    """Catalog entry keyed by its Steam market hash name."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Steam market_hash_name"
    )
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    quality: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    wear: Mapped[str] = mapped_column(String(20), nullable=False, default="none")
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    prices: Mapped[List["MarketplacePrice"]] = relationship(back_populates="item")


class MarketplacePrice(Base):
    """Latest listing price for a catalog item on one marketplace."""

    __tablename__ = "marketplace_prices"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Lowest listing price, used as the item's current value"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Price including buyer fees; ranks offers across platforms"
    )
    last_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    item: Mapped[CatalogItem] = relationship(back_populates="prices")


# Tables owned by the sync service

class UserInventory(Base):
    """Aggregate snapshot row, one per user."""

    __tablename__ = "user_inventories"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    steam_id: Mapped[str] = mapped_column(String(32), nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    last_synced: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        index=True,
        comment="Last successful sync; failures do not move it"
    )
    sync_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SyncStatusEnum.SUCCESS.value,
        index=True,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    consent_given: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    consent_date: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    scheduled_delete: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
        index=True,
        comment="GDPR: last_login + retention window"
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    items: Mapped[List["InventoryItem"]] = relationship(
        back_populates="inventory",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class InventoryItem(Base):
    """One owned item in the latest successful snapshot."""

    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    inventory_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("user_inventories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="NULL when the Steam item has no catalog entry"
    )
    steam_asset_id: Mapped[str] = mapped_column(String(32), nullable=False)
    market_hash_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    custom_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    wear: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    quality: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    stickers: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    can_trade: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    trade_hold_until: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, index=True
    )
    current_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True, index=True
    )
    best_platform: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    icon_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    inspect_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rarity_color: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    inventory: Mapped[UserInventory] = relationship(back_populates="items")

    __table_args__ = (
        UniqueConstraint(
            "inventory_id",
            "steam_asset_id",
            name="uq_inventory_steam_asset"
        ),
    )
