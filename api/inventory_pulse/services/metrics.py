# inventory_pulse/services/metrics.py
"""
Per-product inventory health: total stock, projected stockout days, status
and trending flag.

Pure functions only; ShopMetricsService does the loading and saving.

Status rules, first match wins:

    1. total == 0                                              -> Critical
    2. total <= critical units                                 -> Critical
    3. velocity > 0 and stockout_days <= critical days         -> Critical
    4. total <= low units                                      -> Low
    5. velocity > 0 and stockout_days <= low units / velocity  -> Low
    6. otherwise                                               -> Healthy

Rule 5 compares days against a units-per-velocity figure.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, TypeVar

from inventory_pulse.db_models import ProductStatus, Shop, ShopSettings

DEFAULT_LOW_STOCK_UNITS = 10
DEFAULT_CRITICAL_DAYS = 3
DEFAULT_TRENDING_VELOCITY = 50.0
CRITICAL_UNITS_CAP = 5
CRITICAL_UNITS_RATIO = 0.3

T = TypeVar("T")


def default_critical_units(low_units: int) -> int:
    return min(CRITICAL_UNITS_CAP, math.floor(low_units * CRITICAL_UNITS_RATIO))


@dataclass(frozen=True)
class MetricThresholds:
    low_units: int = DEFAULT_LOW_STOCK_UNITS
    critical_units: Optional[int] = None
    critical_days: Optional[float] = None
    trending_velocity: float = DEFAULT_TRENDING_VELOCITY

    @property
    def effective_critical_units(self) -> int:
        if self.critical_units is not None:
            return self.critical_units
        return default_critical_units(self.low_units)

    @property
    def effective_critical_days(self) -> float:
        if self.critical_days is not None:
            return self.critical_days
        return DEFAULT_CRITICAL_DAYS


@dataclass
class ProductStock:
    product_id: int
    quantities: List[int] = field(default_factory=list)
    sales_velocity: Optional[float] = None  # units/day, None when unknown

    @property
    def total(self) -> int:
        return sum(self.quantities)


@dataclass(frozen=True)
class ProductMetrics:
    current_total_inventory: int
    stockout_days: Optional[float]  # None = no projected stockout
    status: ProductStatus
    trending: bool


def projected_stockout_days(total: int, velocity: Optional[float]) -> Optional[float]:
    if total == 0:
        return 0.0
    v = velocity or 0.0
    if v > 0:
        return round(total / v, 2)
    if total > 0:
        return None
    # oversold with nothing selling
    return 0.0


def classify(
    total: int,
    stockout_days: Optional[float],
    velocity: Optional[float],
    thresholds: MetricThresholds,
) -> ProductStatus:
    v = velocity or 0.0
    low_units = thresholds.low_units

    if total == 0:
        return ProductStatus.Critical
    if total <= thresholds.effective_critical_units:
        return ProductStatus.Critical
    if v > 0 and stockout_days is not None and stockout_days <= thresholds.effective_critical_days:
        return ProductStatus.Critical
    if total <= low_units:
        return ProductStatus.Low
    if v > 0 and stockout_days is not None and stockout_days <= low_units / v:
        return ProductStatus.Low
    return ProductStatus.Healthy


def is_trending(velocity: Optional[float], thresholds: MetricThresholds) -> bool:
    return velocity is not None and velocity > thresholds.trending_velocity


def calculate_product_metrics(product: ProductStock, thresholds: MetricThresholds) -> ProductMetrics:
    total = product.total
    stockout_days = projected_stockout_days(total, product.sales_velocity)
    return ProductMetrics(
        current_total_inventory=total,
        stockout_days=stockout_days,
        status=classify(total, stockout_days, product.sales_velocity, thresholds),
        trending=is_trending(product.sales_velocity, thresholds),
    )


# ============================================================================
# Threshold resolution
# ============================================================================

def _first_set(values: Iterable[Optional[T]], default: T) -> T:
    for value in values:
        if value is not None:
            return value
    return default


def resolve_thresholds(shop: Shop, shop_settings: Optional[ShopSettings]) -> MetricThresholds:
    """
    Collapse per-shop overrides into one MetricThresholds.

    Each threshold takes the first value set along: ShopSettings override,
    Shop column, built-in constant. Critical units with no override fall back
    to the ratio of the resolved low threshold.
    """
    ss = shop_settings
    low_units = _first_set(
        [ss.low_stock_threshold if ss else None, shop.low_stock_threshold],
        DEFAULT_LOW_STOCK_UNITS,
    )
    critical_units = _first_set(
        [ss.critical_stock_threshold_units if ss else None, shop.critical_stock_threshold],
        default_critical_units(low_units),
    )
    critical_days = _first_set(
        [ss.critical_stockout_days if ss else None],
        DEFAULT_CRITICAL_DAYS,
    )
    trending_velocity = _first_set(
        [ss.sales_velocity_threshold if ss else None, shop.high_demand_threshold],
        DEFAULT_TRENDING_VELOCITY,
    )
    return MetricThresholds(
        low_units=low_units,
        critical_units=critical_units,
        critical_days=critical_days,
        trending_velocity=float(trending_velocity),
    )
