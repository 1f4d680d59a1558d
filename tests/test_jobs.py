# tests/test_jobs.py
from __future__ import annotations

import pytest

from inventory_pulse.jobs.catalog_sync import build_parser, run_metrics_only, shop_refs

from fake_platform import SHOP_DOMAIN


def test_shops_pair_with_tokens():
    args = build_parser().parse_args(["--shop", "a.myshopify.com", "--token", "t1", "--shop", "b.myshopify.com", "--token", "t2"])
    refs = shop_refs(args)
    assert [(r.domain, r.access_token) for r in refs] == [("a.myshopify.com", "t1"), ("b.myshopify.com", "t2")]


def test_missing_token_is_rejected():
    args = build_parser().parse_args(["--shop", "a.myshopify.com"])
    with pytest.raises(SystemExit):
        shop_refs(args)


@pytest.mark.asyncio
async def test_metrics_only_run(session, shop):
    summary = await run_metrics_only(session, SHOP_DOMAIN)
    assert summary.success is True
    assert summary.products_updated_count == 0


@pytest.mark.asyncio
async def test_metrics_only_unknown_shop(session):
    summary = await run_metrics_only(session, "missing.myshopify.com")
    assert summary.success is False
