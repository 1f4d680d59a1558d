# inventory_pulse/sync/reconcile.py
"""
Reconciliation of one page of platform products into Product / Variant /
Inventory rows.

Every row is an idempotent upsert keyed on external identifiers and is
committed on its own: one failing row is logged and skipped, its siblings
still land. Derived metric columns (status, stockout_days, trending) are set
on create only and otherwise belong to the metrics run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Dict, Literal, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_pulse.db_models import Inventory, Product, ProductStatus, Variant
from inventory_pulse.settings import settings
from inventory_pulse.sync.types import ExternalProduct, ExternalVariant
from inventory_pulse.throttle import WriteThrottle

logger = logging.getLogger(__name__)

Granularity = Literal["variant", "product"]


@dataclass
class ReconcileStats:
    products_written: int = 0
    products_failed: int = 0
    variants_written: int = 0
    variants_failed: int = 0
    inventory_written: int = 0
    inventory_failed: int = 0
    inventory_skipped: int = 0  # unmapped locations

    def merge(self, other: "ReconcileStats") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))


def _assign(obj: Any, values: Mapping[str, Any]) -> None:
    """Set only attributes that differ so unchanged rows issue no UPDATE."""
    for key, value in values.items():
        if getattr(obj, key) != value:
            setattr(obj, key, value)


class ReconciliationWriter:
    """
    Usage:
        writer = ReconciliationWriter(session, shop.id, location_map, throttle)
        async for products in catalog.pages():
            await writer.write_page(products)
        writer.totals  # ReconcileStats across all pages
    """

    def __init__(
        self,
        session: AsyncSession,
        shop_id: int,
        location_map: Mapping[str, int],
        throttle: Optional[WriteThrottle] = None,
        *,
        granularity: Optional[Granularity] = None,
        shop_label: Optional[str] = None,
    ):
        self.session = session
        self.shop_id = shop_id
        self.location_map = location_map
        self.throttle = throttle or WriteThrottle(settings.WRITE_CONCURRENCY)
        self.granularity: Granularity = granularity or settings.INVENTORY_GRANULARITY
        self.shop_label = shop_label or str(shop_id)
        self.totals = ReconcileStats()

    async def write_page(self, products: Sequence[ExternalProduct]) -> ReconcileStats:
        stats = ReconcileStats()
        for product in products:
            await self._write_product(product, stats)
        self.totals.merge(stats)
        return stats

    # ------------------------------------------------------------------
    # per product
    # ------------------------------------------------------------------

    async def _write_product(self, ext: ExternalProduct, stats: ReconcileStats) -> None:
        product_id = await self._apply(
            f"product {ext.title} (ID: {ext.id})", self._upsert_product, ext
        )
        if product_id is None:
            # variants and inventory need the parent row
            stats.products_failed += 1
            return
        stats.products_written += 1

        variant_ids: Dict[str, int] = {}
        for v in ext.variants:
            variant_id = await self._apply(
                f"variant {v.sku or v.title} (ID: {v.id}) of product {ext.id}",
                self._upsert_variant, product_id, v,
            )
            if variant_id is None:
                stats.variants_failed += 1
                continue
            stats.variants_written += 1
            variant_ids[v.id] = variant_id

        if self.granularity == "product":
            await self._write_product_levels(ext, product_id, stats)
        else:
            await self._write_variant_levels(ext, product_id, variant_ids, stats)

    async def _write_variant_levels(
        self,
        ext: ExternalProduct,
        product_id: int,
        variant_ids: Mapping[str, int],
        stats: ReconcileStats,
    ) -> None:
        for v in ext.variants:
            variant_id = variant_ids.get(v.id)
            if variant_id is None:
                continue
            for level in v.levels:
                warehouse_id = self._warehouse_for(ext, v, level.location_id)
                if warehouse_id is None:
                    stats.inventory_skipped += 1
                    continue
                row_id = await self._apply(
                    f"inventory of variant {v.id} at {level.location_id}",
                    self._upsert_inventory, product_id, variant_id, warehouse_id, level.available,
                )
                if row_id is None:
                    stats.inventory_failed += 1
                else:
                    stats.inventory_written += 1

    async def _write_product_levels(self, ext: ExternalProduct, product_id: int, stats: ReconcileStats) -> None:
        per_warehouse: Dict[int, int] = {}
        for v in ext.variants:
            for level in v.levels:
                warehouse_id = self._warehouse_for(ext, v, level.location_id)
                if warehouse_id is None:
                    stats.inventory_skipped += 1
                    continue
                per_warehouse[warehouse_id] = per_warehouse.get(warehouse_id, 0) + level.available

        for warehouse_id, qty in per_warehouse.items():
            row_id = await self._apply(
                f"inventory of product {ext.id} at warehouse {warehouse_id}",
                self._upsert_inventory, product_id, None, warehouse_id, qty,
            )
            if row_id is None:
                stats.inventory_failed += 1
            else:
                stats.inventory_written += 1

    def _warehouse_for(self, ext: ExternalProduct, v: ExternalVariant, location_id: str) -> Optional[int]:
        warehouse_id = self.location_map.get(location_id)
        if warehouse_id is None:
            logger.warning(
                "[Sync][%s] location %s not in local warehouse map for product %s, variant %s; "
                "inventory for this location not synced",
                self.shop_label, location_id, ext.title, v.sku or v.id,
            )
        return warehouse_id

    async def _apply(self, label: str, fn: Callable[..., Awaitable[int]], *args: Any) -> Optional[int]:
        """Run one upsert under the throttle and commit it; None on failure."""
        async with self.throttle:
            try:
                result = await fn(*args)
                await self.session.commit()
                return result
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error("[Sync][%s] error writing %s: %s", self.shop_label, label, e)
                return None

    # ------------------------------------------------------------------
    # upserts
    # ------------------------------------------------------------------

    async def _upsert_product(self, ext: ExternalProduct) -> int:
        stmt = select(Product).where(Product.shop_id == self.shop_id, Product.external_id == ext.id)
        product = (await self.session.execute(stmt)).scalar_one_or_none()

        descriptive = {
            "title": ext.title,
            "vendor": ext.vendor,
            "product_type": ext.product_type,
            "tags": list(ext.tags),
        }
        if product is None:
            product = Product(
                shop_id=self.shop_id,
                external_id=ext.id,
                status=ProductStatus.Unknown,
                trending=False,
                **descriptive,
            )
            self.session.add(product)
        else:
            _assign(product, descriptive)

        await self.session.flush()
        return product.id

    async def _upsert_variant(self, product_id: int, v: ExternalVariant) -> int:
        stmt = select(Variant).where(Variant.external_id == v.id)
        variant = (await self.session.execute(stmt)).scalar_one_or_none()

        values = {
            "product_id": product_id,
            "title": v.title,
            "sku": v.sku,
            "price": v.price,
            "inventory_quantity": v.inventory_quantity,
            "inventory_item_id": v.inventory_item_id,
        }
        if variant is None:
            variant = Variant(external_id=v.id, **values)
            self.session.add(variant)
        else:
            _assign(variant, values)

        await self.session.flush()
        return variant.id

    async def _upsert_inventory(
        self,
        product_id: int,
        variant_id: Optional[int],
        warehouse_id: int,
        quantity: int,
    ) -> int:
        return await upsert_inventory_row(
            self.session,
            product_id=product_id,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
        )


async def upsert_inventory_row(
    session: AsyncSession,
    *,
    product_id: int,
    variant_id: Optional[int],
    warehouse_id: int,
    quantity: int,
) -> int:
    """
    Upsert one Inventory row (no commit).

    Key is (variant_id, warehouse_id) when a variant is given, otherwise the
    product-level (product_id, warehouse_id) row.
    """
    if variant_id is not None:
        stmt = select(Inventory).where(
            Inventory.variant_id == variant_id,
            Inventory.warehouse_id == warehouse_id,
        )
    else:
        stmt = select(Inventory).where(
            Inventory.product_id == product_id,
            Inventory.variant_id.is_(None),
            Inventory.warehouse_id == warehouse_id,
        )
    row = (await session.execute(stmt)).scalar_one_or_none()

    if row is None:
        row = Inventory(
            product_id=product_id,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
        )
        session.add(row)
    else:
        _assign(row, {"product_id": product_id, "quantity": quantity})

    await session.flush()
    return row.id
