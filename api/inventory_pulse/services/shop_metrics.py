# inventory_pulse/services/shop_metrics.py
"""
Recompute derived metrics for every product of a shop.

Products are walked in id-ordered keyset batches; each batch needs one query
for the product rows and one grouped query for their inventory sums. Every
product gets its own UPDATE and commit, so a failed row never blocks the rest.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_pulse.db_models import Inventory, Product, Shop, ShopSettings
from inventory_pulse.models import MetricsRunSummary
from inventory_pulse.services.metrics import (
    MetricThresholds,
    ProductMetrics,
    ProductStock,
    calculate_product_metrics,
    resolve_thresholds,
)
from inventory_pulse.settings import settings
from inventory_pulse.throttle import WriteThrottle

logger = logging.getLogger(__name__)


class ShopMetricsService:
    """
    Usage:
        service = ShopMetricsService(db, throttle)
        summary = await service.recompute_all(shop_id)
    """

    def __init__(self, db: AsyncSession, throttle: Optional[WriteThrottle] = None, batch_size: Optional[int] = None):
        self.db = db
        self.throttle = throttle or WriteThrottle(settings.WRITE_CONCURRENCY)
        self.batch_size = max(1, batch_size or settings.METRICS_BATCH_SIZE)

    async def load_thresholds(self, shop_id: int) -> Optional[MetricThresholds]:
        shop = await self.db.get(Shop, shop_id)
        if shop is None:
            return None
        stmt = select(ShopSettings).where(ShopSettings.shop_id == shop_id)
        shop_settings = (await self.db.execute(stmt)).scalar_one_or_none()
        return resolve_thresholds(shop, shop_settings)

    async def recompute_all(self, shop_id: int) -> MetricsRunSummary:
        try:
            thresholds = await self.load_thresholds(shop_id)
        except SQLAlchemyError as e:
            logger.error("[Metrics][shop=%s] failed to load thresholds: %s", shop_id, e)
            return MetricsRunSummary(success=False, message=f"Failed to load shop {shop_id}: {e}")

        if thresholds is None:
            logger.warning("[Metrics] shop %s not found", shop_id)
            return MetricsRunSummary(success=False, message=f"Shop with ID {shop_id} not found.")

        logger.info("[Metrics][shop=%s] thresholds: %s", shop_id, thresholds)

        updated = 0
        failed = 0
        last_id = 0
        while True:
            try:
                batch = await self._load_batch(shop_id, last_id)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("[Metrics][shop=%s] batch after id %s failed to load: %s", shop_id, last_id, e)
                return MetricsRunSummary(
                    success=False,
                    products_updated_count=updated,
                    products_failed_count=failed,
                    message=f"Stopped after {updated} products: {e}",
                )
            if not batch:
                break
            last_id = batch[-1].product_id

            for stock in batch:
                metrics = calculate_product_metrics(stock, thresholds)
                if await self._save(stock.product_id, metrics):
                    updated += 1
                else:
                    failed += 1

        message = f"Updated metrics for {updated} products in shop {shop_id}."
        if failed:
            message += f" {failed} failed."
        logger.info("[Metrics][shop=%s] %s", shop_id, message)
        return MetricsRunSummary(
            success=True,
            products_updated_count=updated,
            products_failed_count=failed,
            message=message,
        )

    async def _load_batch(self, shop_id: int, after_id: int) -> List[ProductStock]:
        stmt = (
            select(Product.id, Product.sales_velocity)
            .where(Product.shop_id == shop_id, Product.id > after_id)
            .order_by(Product.id)
            .limit(self.batch_size)
        )
        rows = (await self.db.execute(stmt)).all()
        if not rows:
            return []

        sums = await self._inventory_sums([r.id for r in rows])
        return [
            ProductStock(
                product_id=r.id,
                quantities=[sums[r.id]] if r.id in sums else [],
                sales_velocity=r.sales_velocity,
            )
            for r in rows
        ]

    async def _inventory_sums(self, product_ids: Sequence[int]) -> Dict[int, int]:
        stmt = (
            select(Inventory.product_id, func.sum(Inventory.quantity))
            .where(Inventory.product_id.in_(product_ids))
            .group_by(Inventory.product_id)
        )
        return {pid: int(total or 0) for pid, total in (await self.db.execute(stmt)).all()}

    async def _save(self, product_id: int, metrics: ProductMetrics) -> bool:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(
                status=metrics.status,
                stockout_days=metrics.stockout_days,
                trending=metrics.trending,
            )
        )
        async with self.throttle:
            try:
                await self.db.execute(stmt)
                await self.db.commit()
                return True
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("[Metrics] error updating product %s: %s", product_id, e)
                return False


async def recompute_all(
    session: AsyncSession,
    shop_id: int,
    throttle: Optional[WriteThrottle] = None,
    batch_size: Optional[int] = None,
) -> MetricsRunSummary:
    return await ShopMetricsService(session, throttle, batch_size).recompute_all(shop_id)
