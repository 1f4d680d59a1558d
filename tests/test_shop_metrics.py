# tests/test_shop_metrics.py
from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.dml import Update

from inventory_pulse.db_models import Inventory, Product, ProductStatus, Shop, ShopSettings, Warehouse
from inventory_pulse.services.shop_metrics import recompute_all


async def _seed(session, shop_id, rows):
    """rows: [(external_id, velocity, [qty per warehouse])]"""
    w1 = Warehouse(shop_id=shop_id, name="Main", location="Main", external_location_id="L1")
    w2 = Warehouse(shop_id=shop_id, name="Outlet", location="Outlet", external_location_id="L2")
    session.add_all([w1, w2])
    await session.flush()

    ids = {}
    for ext_id, velocity, qtys in rows:
        p = Product(shop_id=shop_id, external_id=ext_id, title=ext_id, tags=[], sales_velocity=velocity)
        session.add(p)
        await session.flush()
        for w, q in zip((w1, w2), qtys):
            session.add(Inventory(product_id=p.id, warehouse_id=w.id, quantity=q))
        ids[ext_id] = p.id
    await session.commit()
    return ids


async def _metrics(session, product_id):
    row = (await session.execute(
        select(Product.status, Product.stockout_days, Product.trending).where(Product.id == product_id)
    )).one()
    return tuple(row)


@pytest.mark.asyncio
async def test_recomputes_every_product(session, shop):
    shop_id = shop.id
    ids = await _seed(session, shop_id, [
        ("healthy", 10.0, [60, 40]),
        ("low", 2.0, [8]),
        ("empty", 0.0, []),
        ("idle", None, [20, 5]),
        ("hot", 80.0, [900, 100]),
    ])

    summary = await recompute_all(session, shop_id)

    assert summary.success is True
    assert summary.products_updated_count == 5
    assert summary.products_failed_count == 0
    assert await _metrics(session, ids["healthy"]) == (ProductStatus.Healthy, 10.0, False)
    assert await _metrics(session, ids["low"]) == (ProductStatus.Low, 4.0, False)
    assert await _metrics(session, ids["empty"]) == (ProductStatus.Critical, 0.0, False)
    assert await _metrics(session, ids["idle"]) == (ProductStatus.Healthy, None, False)
    assert await _metrics(session, ids["hot"]) == (ProductStatus.Healthy, 12.5, True)


@pytest.mark.asyncio
async def test_stockout_matches_inventory_sum(session, shop):
    shop_id = shop.id
    ids = await _seed(session, shop_id, [("a", 4.0, [7, 9]), ("b", 3.0, [-2, 14])])

    await recompute_all(session, shop_id, batch_size=1)

    for pid in ids.values():
        total = (await session.execute(
            select(func.sum(Inventory.quantity)).where(Inventory.product_id == pid)
        )).scalar_one()
        velocity, stockout = (await session.execute(
            select(Product.sales_velocity, Product.stockout_days).where(Product.id == pid)
        )).one()
        assert stockout == round(total / velocity, 2)


@pytest.mark.asyncio
async def test_batches_cover_all_products(session, shop):
    shop_id = shop.id
    await _seed(session, shop_id, [(f"p{i}", 1.0, [100]) for i in range(7)])

    summary = await recompute_all(session, shop_id, batch_size=3)

    assert summary.products_updated_count == 7
    statuses = (await session.execute(select(Product.status))).scalars().all()
    assert ProductStatus.Unknown not in statuses


@pytest.mark.asyncio
async def test_shop_settings_override_thresholds(session, shop):
    shop_id = shop.id
    session.add(ShopSettings(shop_id=shop_id, low_stock_threshold=50, sales_velocity_threshold=5.0))
    await session.commit()
    ids = await _seed(session, shop_id, [("mid", 6.0, [40])])

    await recompute_all(session, shop_id)

    status, stockout, trending = await _metrics(session, ids["mid"])
    # 40 <= 50 low units; 6 > 5 trending threshold
    assert status == ProductStatus.Low
    assert stockout == 6.67
    assert trending is True


@pytest.mark.asyncio
async def test_only_the_requested_shop_is_touched(session, shop):
    shop_id = shop.id
    other = Shop(domain="other.myshopify.com")
    session.add(other)
    await session.commit()
    other_id = other.id
    ids = await _seed(session, shop_id, [("mine", 1.0, [100])])
    session.add(Product(shop_id=other_id, external_id="theirs", title="theirs", tags=[]))
    await session.commit()

    summary = await recompute_all(session, shop_id)

    assert summary.products_updated_count == 1
    theirs = (await session.execute(select(Product.status).where(Product.external_id == "theirs"))).scalar_one()
    assert theirs == ProductStatus.Unknown
    assert (await _metrics(session, ids["mine"]))[0] == ProductStatus.Healthy


@pytest.mark.asyncio
async def test_missing_shop_reports_failure(session):
    summary = await recompute_all(session, 12345)

    assert summary.success is False
    assert summary.products_updated_count == 0
    assert "not found" in summary.message


@pytest.mark.asyncio
async def test_failed_product_update_is_counted_and_skipped(session, shop, monkeypatch):
    shop_id = shop.id
    ids = await _seed(session, shop_id, [("a", 1.0, [100]), ("b", 1.0, [100]), ("c", 2.0, [8])])

    real_execute = session.execute
    updates = []

    async def flaky_execute(stmt, *args, **kwargs):
        if isinstance(stmt, Update):
            updates.append(stmt)
            if len(updates) == 2:
                raise SQLAlchemyError("deadlock detected")
        return await real_execute(stmt, *args, **kwargs)

    monkeypatch.setattr(session, "execute", flaky_execute)
    summary = await recompute_all(session, shop_id)
    monkeypatch.undo()

    assert summary.success is True
    assert summary.products_updated_count == 2
    assert summary.products_failed_count == 1
    assert "1 failed" in summary.message
    assert (await _metrics(session, ids["a"]))[0] == ProductStatus.Healthy
    assert (await _metrics(session, ids["b"]))[0] == ProductStatus.Unknown
    assert (await _metrics(session, ids["c"]))[0] == ProductStatus.Low
