# inventory_pulse/sync/catalog.py
"""
One full catalog sync for a shop:

    locations -> products (with variants + levels) -> reconcile -> metrics

Progress is committed row by row, so an interrupted run leaves a valid store
and the next run (optionally from SyncRunSummary.last_cursor) converges.
Every run is recorded in sync_log.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_pulse.db_models import Shop, SyncLog, SyncStatus
from inventory_pulse.errors import PlatformApiError, ShopNotFoundError
from inventory_pulse.models import MetricsRunSummary, SyncRunSummary
from inventory_pulse.services.shop_metrics import recompute_all
from inventory_pulse.settings import Settings, settings as default_settings
from inventory_pulse.sync.locations import resolve_locations
from inventory_pulse.sync.pager import ProductCatalogPager
from inventory_pulse.sync.reconcile import ReconciliationWriter
from inventory_pulse.throttle import WriteThrottle

logger = logging.getLogger(__name__)

SYNC_TYPE = "catalog"


async def _load_shop_id(session: AsyncSession, shop_domain: str) -> int:
    stmt = select(Shop.id).where(Shop.domain == shop_domain)
    shop_id = (await session.execute(stmt)).scalar_one_or_none()
    if shop_id is None:
        raise ShopNotFoundError(shop_domain)
    return shop_id


async def _open_log(session: AsyncSession, shop_domain: str, start_cursor: Optional[str]) -> Optional[int]:
    try:
        entry = SyncLog(
            sync_type=SYNC_TYPE,
            direction="in",
            target_type="shop",
            target_code=shop_domain,
            status=SyncStatus.started,
            started_at=datetime.now(timezone.utc),
            metadata_={"start_cursor": start_cursor},
        )
        session.add(entry)
        await session.commit()
        return entry.id
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("[Sync][%s] could not open sync_log entry: %s", shop_domain, e)
        return None


def _run_status(summary: SyncRunSummary, error: Optional[str], halted: bool) -> SyncStatus:
    if error and summary.products_written == 0:
        return SyncStatus.failed
    if error or halted or summary.products_failed or summary.variants_failed or summary.inventory_failed:
        return SyncStatus.partial
    return SyncStatus.completed


async def _close_run(
    session: AsyncSession,
    *,
    shop_id: Optional[int],
    log_id: Optional[int],
    summary: SyncRunSummary,
    status: SyncStatus,
    error: Optional[str],
    halted: bool,
) -> None:
    finished = datetime.now(timezone.utc)
    try:
        if shop_id is not None:
            values = {"last_sync_at": finished, "last_sync_status": status.value}
            if status == SyncStatus.completed:
                values["initial_sync_completed"] = True
            await session.execute(update(Shop).where(Shop.id == shop_id).values(**values))

        if log_id is not None:
            await session.execute(
                update(SyncLog)
                .where(SyncLog.id == log_id)
                .values(
                    status=status,
                    items_total=summary.products_written + summary.products_failed,
                    items_success=summary.products_written,
                    items_failed=summary.products_failed,
                    items_skipped=summary.inventory_skipped,
                    error_message=error,
                    finished_at=finished,
                    duration_ms=summary.duration_ms,
                    metadata_={
                        "last_cursor": summary.last_cursor,
                        "pages_fetched": summary.pages_fetched,
                        "halted_on_shape": halted,
                        "locations_mapped": summary.locations_mapped,
                        "variants_written": summary.variants_written,
                        "variants_failed": summary.variants_failed,
                        "inventory_written": summary.inventory_written,
                        "inventory_failed": summary.inventory_failed,
                        "metrics": summary.metrics.model_dump() if summary.metrics else None,
                    },
                )
            )
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("[Sync][%s] could not record sync result: %s", summary.shop_domain, e)


async def sync_shop(
    session: AsyncSession,
    shop_domain: str,
    client,
    *,
    settings: Optional[Settings] = None,
    start_cursor: Optional[str] = None,
) -> SyncRunSummary:
    """
    Run one catalog sync for `shop_domain` using an already authenticated client.

    Never raises for platform or row errors: the outcome is in the returned
    summary (and the sync_log row), details in the log.
    """
    cfg = settings or default_settings
    t0 = time.monotonic()
    summary = SyncRunSummary(success=False, shop_domain=shop_domain, last_cursor=start_cursor)

    log_id = await _open_log(session, shop_domain, start_cursor)

    try:
        shop_id = await _load_shop_id(session, shop_domain)
    except (ShopNotFoundError, SQLAlchemyError) as e:
        logger.error("[Sync][%s] aborted: %s", shop_domain, e)
        summary.message = str(e)
        summary.sync_log_id = log_id
        summary.duration_ms = int((time.monotonic() - t0) * 1000)
        await _close_run(
            session, shop_id=None, log_id=log_id, summary=summary,
            status=SyncStatus.failed, error=str(e), halted=False,
        )
        return summary

    logger.info("[Sync][%s] starting catalog sync (shop id %s)", shop_domain, shop_id)
    throttle = WriteThrottle(cfg.WRITE_CONCURRENCY)
    error: Optional[str] = None
    halted = False

    catalog = ProductCatalogPager(
        client,
        page_size=cfg.PRODUCT_PAGE_SIZE,
        variant_page_size=cfg.VARIANT_PAGE_SIZE,
        level_page_size=cfg.INVENTORY_LEVEL_PAGE_SIZE,
        start_cursor=start_cursor,
    )
    writer = ReconciliationWriter(
        session,
        shop_id,
        {},
        throttle,
        granularity=cfg.INVENTORY_GRANULARITY,
        shop_label=shop_domain,
    )
    try:
        writer.location_map = await resolve_locations(
            session, shop_id, client, throttle, page_size=cfg.LOCATION_PAGE_SIZE
        )
        summary.locations_mapped = len(writer.location_map)

        async for products in catalog.pages():
            stats = await writer.write_page(products)
            logger.info(
                "[Sync][%s] page %d: %d products written, %d failed, %d inventory rows, %d skipped",
                shop_domain, catalog.pages_fetched, stats.products_written, stats.products_failed,
                stats.inventory_written, stats.inventory_skipped,
            )
        halted = catalog.halted_on_shape
        if halted:
            error = "Malformed catalog data from platform; paging stopped"
            logger.error("[Sync][%s] %s; pages already written are kept", shop_domain, error)
    except PlatformApiError as e:
        error = f"Platform API error: {e}"
        logger.error("[Sync][%s] %s; pages already written are kept", shop_domain, error)
    except Exception:
        # the run must still be closed in sync_log
        await session.rollback()
        error = "Unexpected error during sync; see log for details"
        logger.exception("[Sync][%s] unexpected error after %d pages", shop_domain, catalog.pages_fetched)

    totals = writer.totals
    summary.products_written = totals.products_written
    summary.products_failed = totals.products_failed
    summary.variants_written = totals.variants_written
    summary.variants_failed = totals.variants_failed
    summary.inventory_written = totals.inventory_written
    summary.inventory_failed = totals.inventory_failed
    summary.inventory_skipped = totals.inventory_skipped
    summary.pages_fetched = catalog.pages_fetched
    summary.last_cursor = catalog.cursor

    # metrics run over whatever is in the store, even after a failed fetch
    metrics: MetricsRunSummary = await recompute_all(session, shop_id, throttle, cfg.METRICS_BATCH_SIZE)
    summary.metrics = metrics
    if not metrics.success and error is None:
        error = f"Metrics run failed: {metrics.message}"

    status = _run_status(summary, error, halted)
    summary.success = error is None
    summary.duration_ms = int((time.monotonic() - t0) * 1000)
    summary.sync_log_id = log_id
    summary.message = error or (
        f"Synced {summary.products_written} products "
        f"({summary.products_failed} failed, {summary.inventory_skipped} inventory rows skipped)"
    )

    await _close_run(
        session, shop_id=shop_id, log_id=log_id, summary=summary,
        status=status, error=error, halted=halted,
    )
    logger.info("[Sync][%s] finished: %s (%s, %d ms)", shop_domain, summary.message, status.value, summary.duration_ms)
    return summary
