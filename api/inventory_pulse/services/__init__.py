# inventory_pulse/services/__init__.py
"""
Business logic services for Inventory Pulse.
"""
from inventory_pulse.services.metrics import (
    MetricThresholds,
    ProductMetrics,
    ProductStock,
    calculate_product_metrics,
    resolve_thresholds,
)
from inventory_pulse.services.shop_metrics import ShopMetricsService, recompute_all
from inventory_pulse.services.inventory_push import set_on_hand_quantity

__all__ = [
    "MetricThresholds",
    "ProductMetrics",
    "ProductStock",
    "calculate_product_metrics",
    "resolve_thresholds",
    "ShopMetricsService",
    "recompute_all",
    "set_on_hand_quantity",
]
