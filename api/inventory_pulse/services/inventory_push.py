# inventory_pulse/services/inventory_push.py
"""
Push a corrected on-hand quantity for one variant at one location to the
platform, then mirror it into the local Inventory table.
"""
from __future__ import annotations

import logging
from typing import Literal, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_pulse.db_models import Product, Variant, Warehouse
from inventory_pulse.errors import PlatformApiError
from inventory_pulse.models import PushResult
from inventory_pulse.settings import settings
from inventory_pulse.sync.queries import INVENTORY_SET_ON_HAND_MUTATION
from inventory_pulse.sync.reconcile import upsert_inventory_row
from inventory_pulse.throttle import WriteThrottle

logger = logging.getLogger(__name__)

ADJUSTMENT_REASON = "correction"


async def set_on_hand_quantity(
    session: AsyncSession,
    client,
    variant_id: int,
    external_location_id: str,
    quantity: int,
    throttle: Optional[WriteThrottle] = None,
    *,
    granularity: Optional[Literal["variant", "product"]] = None,
) -> PushResult:
    """
    Set the platform's on-hand quantity and, on success, the local row.

    Returns a failed PushResult (never raises) for bad input, an unlinked
    variant, platform user errors or API failures.
    """
    if not variant_id:
        return PushResult(success=False, message="Variant ID is required.")
    if quantity is None or quantity < 0:
        return PushResult(success=False, message="Quantity must be a non-negative number.", variant_id=variant_id)
    if not external_location_id:
        return PushResult(success=False, message="Location ID is required.", variant_id=variant_id)

    base = dict(variant_id=variant_id, location_id=external_location_id, quantity=quantity)

    variant = await session.get(Variant, variant_id)
    if variant is None or not variant.inventory_item_id:
        sku = variant.sku if variant is not None and variant.sku else "Unknown"
        return PushResult(
            success=False,
            message=f"Variant (ID: {variant_id}, SKU: {sku}) is not linked to a platform inventory item.",
            **base,
        )
    product_id = variant.product_id
    sku = variant.sku or "N/A"

    variables = {
        "input": {
            "reason": ADJUSTMENT_REASON,
            "setQuantities": [{
                "inventoryItemId": variant.inventory_item_id,
                "locationId": external_location_id,
                "quantity": quantity,
            }],
        }
    }
    try:
        data = await client.execute(INVENTORY_SET_ON_HAND_MUTATION, variables)
    except PlatformApiError as e:
        logger.error("[Push] inventory update for variant %s failed: %s", variant_id, e)
        return PushResult(success=False, message=f"Platform request failed: {e}", **base)

    payload = (data or {}).get("inventorySetOnHandQuantities") or {}
    user_errors = payload.get("userErrors") or []
    if user_errors:
        logger.error("[Push] platform rejected inventory update for variant %s: %s", variant_id, user_errors)
        return PushResult(
            success=False,
            message="Platform rejected the inventory update.",
            user_errors=user_errors,
            **base,
        )
    group_id = (payload.get("inventoryAdjustmentGroup") or {}).get("id")

    local_id = await _mirror_locally(
        session,
        product_id=product_id,
        variant_id=variant_id,
        external_location_id=external_location_id,
        quantity=quantity,
        throttle=throttle or WriteThrottle(settings.WRITE_CONCURRENCY),
        granularity=granularity or settings.INVENTORY_GRANULARITY,
    )

    return PushResult(
        success=True,
        message=f"Inventory for SKU {sku} updated to {quantity}.",
        adjustment_group_id=group_id,
        local_inventory_id=local_id,
        **base,
    )


async def _mirror_locally(
    session: AsyncSession,
    *,
    product_id: int,
    variant_id: int,
    external_location_id: str,
    quantity: int,
    throttle: WriteThrottle,
    granularity: str,
) -> Optional[int]:
    stmt = (
        select(Warehouse.id)
        .join(Product, Product.shop_id == Warehouse.shop_id)
        .where(Product.id == product_id, Warehouse.external_location_id == external_location_id)
    )
    warehouse_id = (await session.execute(stmt)).scalar_one_or_none()
    if warehouse_id is None:
        logger.warning(
            "[Push] warehouse for location %s not found locally; local inventory may be out of sync",
            external_location_id,
        )
        return None

    async with throttle:
        try:
            row_id = await upsert_inventory_row(
                session,
                product_id=product_id,
                variant_id=variant_id if granularity == "variant" else None,
                warehouse_id=warehouse_id,
                quantity=quantity,
            )
            await session.commit()
            return row_id
        except SQLAlchemyError as e:
            # platform already holds the new quantity; next sync converges
            await session.rollback()
            logger.error("[Push] local inventory update for variant %s failed: %s", variant_id, e)
            return None
