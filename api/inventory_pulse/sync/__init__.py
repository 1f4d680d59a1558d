# inventory_pulse/sync/__init__.py
"""
Platform -> local store synchronization.
"""
from inventory_pulse.sync.catalog import sync_shop
from inventory_pulse.sync.locations import resolve_locations
from inventory_pulse.sync.pager import CatalogPager, ProductCatalogPager
from inventory_pulse.sync.reconcile import ReconciliationWriter, ReconcileStats

__all__ = [
    "sync_shop",
    "resolve_locations",
    "CatalogPager",
    "ProductCatalogPager",
    "ReconciliationWriter",
    "ReconcileStats",
]
