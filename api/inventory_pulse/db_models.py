# inventory_pulse/db_models.py
"""
SQLAlchemy ORM Models for Inventory Pulse.

Shop -> Warehouses / Products -> Variants -> Inventory, plus per-shop
threshold overrides and the sync run log.
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
import enum

from sqlalchemy import (
    String, Integer, BigInteger, Boolean, Text, DateTime, Float,
    Numeric, ForeignKey, Index, UniqueConstraint,
    Enum as SQLEnum, JSON, func, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from inventory_pulse.database import Base

# BIGINT keys in PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")

# ============================================================================
# ENUMS
# ============================================================================

class ProductStatus(str, enum.Enum):
    Unknown = "Unknown"
    Healthy = "Healthy"
    Low = "Low"
    Critical = "Critical"


class SyncStatus(str, enum.Enum):
    started = "started"
    completed = "completed"
    partial = "partial"
    failed = "failed"


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


# ============================================================================
# 1. SHOPS
# ============================================================================

class Shop(TimestampMixin, Base):
    __tablename__ = "shops"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    low_stock_threshold: Mapped[Optional[int]] = mapped_column(Integer, default=10)
    critical_stock_threshold: Mapped[Optional[int]] = mapped_column(Integer)
    high_demand_threshold: Mapped[Optional[float]] = mapped_column(Float)
    initial_sync_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_sync_status: Mapped[Optional[str]] = mapped_column(String(50))

    # Relationships
    warehouses: Mapped[List["Warehouse"]] = relationship(back_populates="shop")
    products: Mapped[List["Product"]] = relationship(back_populates="shop")
    settings: Mapped[Optional["ShopSettings"]] = relationship(back_populates="shop", uselist=False)


# ============================================================================
# 2. SHOP SETTINGS (threshold overrides)
# ============================================================================

class ShopSettings(TimestampMixin, Base):
    __tablename__ = "shop_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    shop_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("shops.id", ondelete="CASCADE"), unique=True, nullable=False)
    low_stock_threshold: Mapped[Optional[int]] = mapped_column(Integer)
    critical_stock_threshold_units: Mapped[Optional[int]] = mapped_column(Integer)
    critical_stockout_days: Mapped[Optional[int]] = mapped_column(Integer)
    sales_velocity_threshold: Mapped[Optional[float]] = mapped_column(Float)

    shop: Mapped["Shop"] = relationship(back_populates="settings")


# ============================================================================
# 3. WAREHOUSES
# ============================================================================

class Warehouse(TimestampMixin, Base):
    __tablename__ = "warehouses"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    shop_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    # NULL = local-only warehouse, never receives synced inventory
    external_location_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    shop: Mapped["Shop"] = relationship(back_populates="warehouses")
    inventory: Mapped[List["Inventory"]] = relationship(back_populates="warehouse")

    __table_args__ = (
        Index("idx_warehouses_shop", "shop_id"),
    )


# ============================================================================
# 4. PRODUCTS
# ============================================================================

class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    shop_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    vendor: Mapped[str] = mapped_column(String(255), default="Unknown", nullable=False)
    product_type: Mapped[Optional[str]] = mapped_column(String(255))
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Derived metrics - written by the metrics run only
    status: Mapped[ProductStatus] = mapped_column(
        SQLEnum(ProductStatus, name="product_status"),
        default=ProductStatus.Unknown,
        nullable=False
    )
    stockout_days: Mapped[Optional[float]] = mapped_column(Float)
    trending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Units sold per day, fed by analytics outside this package
    sales_velocity: Mapped[Optional[float]] = mapped_column(Float)

    # Relationships
    shop: Mapped["Shop"] = relationship(back_populates="products")
    variants: Mapped[List["Variant"]] = relationship(back_populates="product", cascade="all, delete-orphan")
    inventory: Mapped[List["Inventory"]] = relationship(back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("shop_id", "external_id", name="uq_products_shop_external"),
        Index("idx_products_status", "status"),
        Index("idx_products_trending", "trending"),
    )


# ============================================================================
# 5. VARIANTS
# ============================================================================

class Variant(TimestampMixin, Base):
    __tablename__ = "variants"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(500))
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    # Platform-reported total; per-warehouse truth lives in Inventory
    inventory_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    # Needed to push quantity changes back to the platform
    inventory_item_id: Mapped[Optional[str]] = mapped_column(String(255))

    # Relationships
    product: Mapped["Product"] = relationship(back_populates="variants")
    inventory: Mapped[List["Inventory"]] = relationship(back_populates="variant")

    __table_args__ = (
        Index("idx_variants_product", "product_id"),
        Index("idx_variants_sku", "sku"),
    )


# ============================================================================
# 6. INVENTORY
# ============================================================================

class Inventory(TimestampMixin, Base):
    __tablename__ = "inventory"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    # NULL for product-granularity rows
    variant_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("variants.id", ondelete="CASCADE"))
    warehouse_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    product: Mapped["Product"] = relationship(back_populates="inventory")
    variant: Mapped[Optional["Variant"]] = relationship(back_populates="inventory")
    warehouse: Mapped["Warehouse"] = relationship(back_populates="inventory")

    __table_args__ = (
        UniqueConstraint("variant_id", "warehouse_id", name="uq_inventory_variant_warehouse"),
        Index("uq_inventory_product_warehouse", "product_id", "warehouse_id", unique=True,
              postgresql_where=text("variant_id IS NULL"), sqlite_where=text("variant_id IS NULL")),
        Index("idx_inventory_product", "product_id"),
        Index("idx_inventory_warehouse", "warehouse_id"),
    )


# ============================================================================
# 7. SYNC LOG
# ============================================================================

class SyncLog(Base):
    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    sync_type: Mapped[str] = mapped_column(String(50), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), default="in", nullable=False)
    target_type: Mapped[Optional[str]] = mapped_column(String(50))
    target_code: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[SyncStatus] = mapped_column(
        SQLEnum(SyncStatus, name="sync_status"),
        default=SyncStatus.started,
        nullable=False
    )
    items_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_success: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer)
    metadata_: Mapped[dict] = mapped_column("metadata", JSONType, default=dict, nullable=False)

    __table_args__ = (
        Index("idx_sync_log_type", "sync_type", "target_code"),
        Index("idx_sync_log_started", "started_at"),
    )
