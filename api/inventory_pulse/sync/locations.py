# inventory_pulse/sync/locations.py
"""
Location -> Warehouse resolution.

Runs once per sync, before any inventory write: the map it returns is the
only way an inventory level finds its local warehouse.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_pulse.db_models import Warehouse
from inventory_pulse.errors import PageShapeError
from inventory_pulse.settings import settings
from inventory_pulse.sync.pager import CatalogPager
from inventory_pulse.sync.queries import LOCATIONS_QUERY
from inventory_pulse.sync.types import ExternalLocation
from inventory_pulse.throttle import WriteThrottle

logger = logging.getLogger(__name__)


async def upsert_warehouse(session: AsyncSession, shop_id: int, loc: ExternalLocation) -> int:
    """Create or rename the warehouse mapped to an external location; return its id."""
    stmt = select(Warehouse).where(
        Warehouse.shop_id == shop_id,
        Warehouse.external_location_id == loc.id,
    )
    warehouse = (await session.execute(stmt)).scalar_one_or_none()

    if warehouse is None:
        warehouse = Warehouse(
            shop_id=shop_id,
            name=loc.name,
            location=loc.name,
            external_location_id=loc.id,
        )
        session.add(warehouse)
    elif warehouse.name != loc.name:
        warehouse.name = loc.name

    await session.flush()
    return warehouse.id


async def resolve_locations(
    session: AsyncSession,
    shop_id: int,
    client,
    throttle: Optional[WriteThrottle] = None,
    *,
    page_size: Optional[int] = None,
) -> Dict[str, int]:
    """
    Page through the platform's locations and return {external id: warehouse id}.

    A location whose upsert fails is logged and left out of the map; its
    inventory is skipped until a later run maps it. Fetch errors propagate.
    """
    throttle = throttle or WriteThrottle(settings.WRITE_CONCURRENCY)
    pager = CatalogPager(
        client,
        LOCATIONS_QUERY,
        ("locations",),
        page_size=min(page_size or settings.LOCATION_PAGE_SIZE, 50),
        label="locations",
    )

    location_map: Dict[str, int] = {}
    failed = 0

    async for page in pager:
        for node in page.items:
            try:
                loc = ExternalLocation.from_node(node)
            except PageShapeError as e:
                logger.warning("[Sync][shop=%s] skipping location node: %s", shop_id, e)
                failed += 1
                continue

            async with throttle:
                try:
                    warehouse_id = await upsert_warehouse(session, shop_id, loc)
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    failed += 1
                    logger.error(
                        "[Sync][shop=%s] error upserting location %s (ID: %s): %s",
                        shop_id, loc.name, loc.id, e,
                    )
                    continue
            location_map[loc.id] = warehouse_id

        logger.info(
            "[Sync][shop=%s] fetched %d locations, hasNextPage=%s",
            shop_id, len(page.items), page.has_next_page,
        )

    logger.info("[Sync][shop=%s] mapped %d locations (%d failed)", shop_id, len(location_map), failed)
    return location_map
