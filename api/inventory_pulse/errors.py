# inventory_pulse/errors.py
from __future__ import annotations
from typing import Any, List, Optional


class InventoryPulseError(Exception):
    """Base error for the sync / metrics core."""


class PlatformApiError(InventoryPulseError):
    """Transport failure, bad HTTP status or GraphQL execution errors."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class PageShapeError(InventoryPulseError):
    """A page came back without the fields pagination depends on."""


class ShopNotFoundError(InventoryPulseError):
    def __init__(self, shop_ref: Any):
        super().__init__(f"Shop {shop_ref!r} not found in local database")
        self.shop_ref = shop_ref
