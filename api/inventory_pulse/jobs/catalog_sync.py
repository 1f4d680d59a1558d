# inventory_pulse/jobs/catalog_sync.py
"""
Catalog sync job.

    python -m inventory_pulse.jobs.catalog_sync --shop demo.myshopify.com --token shpat_xxx
    python -m inventory_pulse.jobs.catalog_sync --shop a.myshopify.com --token T1 --shop b.myshopify.com --token T2
    python -m inventory_pulse.jobs.catalog_sync --shop demo.myshopify.com --metrics-only

Shops run one after another; a run never overlaps another for the same shop.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_pulse.clients.platform import PlatformClient
from inventory_pulse.database import close_db, get_session_context, init_db
from inventory_pulse.db_models import Shop
from inventory_pulse.logging_setup import setup_logging
from inventory_pulse.models import MetricsRunSummary, ShopRef, SyncRunSummary
from inventory_pulse.services.shop_metrics import recompute_all
from inventory_pulse.settings import settings
from inventory_pulse.sync.catalog import sync_shop


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="inventory_pulse.jobs.catalog_sync", description="Sync catalog and inventory per shop")
    p.add_argument("--shop", action="append", required=True, help="shop domain, repeatable")
    p.add_argument("--token", action="append", default=[], help="access token for the matching --shop")
    p.add_argument("--start-cursor", default=None, help="resume product paging after this cursor (single shop)")
    p.add_argument("--metrics-only", action="store_true", help="only recompute product metrics")
    p.add_argument("--create-tables", action="store_true", help="create missing tables first (dev)")
    return p


def shop_refs(args: argparse.Namespace) -> List[ShopRef]:
    if len(args.token) != len(args.shop):
        raise SystemExit("each --shop needs a matching --token")
    return [ShopRef(domain=d, access_token=t) for d, t in zip(args.shop, args.token)]


async def run_once(session: AsyncSession, ref: ShopRef, start_cursor: Optional[str] = None) -> SyncRunSummary:
    async with PlatformClient(ref.domain, ref.access_token) as client:
        return await sync_shop(session, ref.domain, client, start_cursor=start_cursor)


async def run_metrics_only(session: AsyncSession, shop_domain: str) -> MetricsRunSummary:
    shop_id = (await session.execute(select(Shop.id).where(Shop.domain == shop_domain))).scalar_one_or_none()
    if shop_id is None:
        return MetricsRunSummary(success=False, message=f"Shop {shop_domain} not found.")
    return await recompute_all(session, shop_id)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings)
    await init_db(create_tables=args.create_tables)

    ok = True
    try:
        if args.metrics_only:
            for domain in args.shop:
                async with get_session_context() as session:
                    summary = await run_metrics_only(session, domain)
                print(f"[catalog_sync] {domain} metrics: {summary.message}")
                ok = ok and summary.success
        else:
            refs = shop_refs(args)
            if args.start_cursor and len(refs) > 1:
                raise SystemExit("--start-cursor applies to a single shop")
            for ref in refs:
                async with get_session_context() as session:
                    result = await run_once(session, ref, args.start_cursor)
                print(
                    f"[catalog_sync] {ref.domain}: {result.message} "
                    f"(locations={result.locations_mapped}, pages={result.pages_fetched}, "
                    f"last_cursor={result.last_cursor})"
                )
                ok = ok and result.success
    finally:
        await close_db()

    return 0 if ok else 1


def run_cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run_cli()
