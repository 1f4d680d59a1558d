# tests/test_pager.py
from __future__ import annotations

import httpx
import pytest

from inventory_pulse.errors import PageShapeError, PlatformApiError
from inventory_pulse.sync.pager import CatalogPager, ProductCatalogPager, parse_connection
from inventory_pulse.sync.queries import LOCATIONS_QUERY
from inventory_pulse.sync.types import parse_int

from fake_platform import level, product, variant


def _seed_locations(platform, n: int) -> None:
    for i in range(1, n + 1):
        platform.add_location(f"gid://shopify/Location/{i}", f"Store {i}")


def _locations_pager(client, **kwargs) -> CatalogPager:
    return CatalogPager(client, LOCATIONS_QUERY, ("locations",), **kwargs)


# ------------------------------------------------------------------
# parse_connection
# ------------------------------------------------------------------

def test_parse_connection_reads_edges_and_page_info():
    page = parse_connection(
        {"edges": [{"node": {"id": "a"}}, {"node": None}], "pageInfo": {"hasNextPage": True, "endCursor": "c1"}},
        "x",
    )
    assert page.items == [{"id": "a"}]
    assert page.has_next_page is True
    assert page.end_cursor == "c1"


@pytest.mark.parametrize(
    "conn",
    [
        None,
        {"edges": "nope", "pageInfo": {"hasNextPage": False}},
        {"edges": []},
        {"edges": [{"node": {"id": "a"}}], "pageInfo": {"hasNextPage": True, "endCursor": None}},
        {"edges": [], "pageInfo": {"hasNextPage": True, "endCursor": "c"}},
    ],
)
def test_parse_connection_rejects_malformed(conn):
    with pytest.raises(PageShapeError):
        parse_connection(conn, "x")


# ------------------------------------------------------------------
# CatalogPager
# ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_walks_every_page_in_order(platform, client):
    _seed_locations(platform, 5)
    pager = _locations_pager(client, page_size=2)

    seen = []
    async for page in pager:
        seen.extend(n["id"] for n in page.items)

    assert seen == [f"gid://shopify/Location/{i}" for i in range(1, 6)]
    assert pager.pages_fetched == 3
    assert pager.has_next_page is False
    assert pager.cursor == "5"
    assert [v["cursor"] for _, v in platform.calls] == [None, "2", "4"]


@pytest.mark.asyncio
async def test_cursor_moves_only_after_consumer_is_done(platform, client):
    _seed_locations(platform, 4)
    pager = _locations_pager(client, page_size=2)

    cursors_during = []
    async for _page in pager:
        cursors_during.append(pager.cursor)

    assert cursors_during == [None, "2"]
    assert pager.cursor == "4"


@pytest.mark.asyncio
async def test_restart_from_cursor(platform, client):
    _seed_locations(platform, 5)
    items = await _locations_pager(client, page_size=2, start_cursor="2").collect()
    assert [n["name"] for n in items] == ["Store 3", "Store 4", "Store 5"]


@pytest.mark.asyncio
async def test_api_error_stops_paging_and_propagates(platform, client):
    _seed_locations(platform, 5)

    def fail_second_page(op, variables):
        if variables.get("cursor") == "2":
            return httpx.Response(500, text="boom")
        return None

    platform.override = fail_second_page
    pager = _locations_pager(client, page_size=2)

    pages = 0
    with pytest.raises(PlatformApiError):
        async for _page in pager:
            pages += 1

    assert pages == 1
    assert pager.has_next_page is False
    # last fully consumed page, usable as a resume point
    assert pager.cursor == "2"


@pytest.mark.asyncio
async def test_malformed_page_stops_without_raising(platform, client):
    _seed_locations(platform, 5)

    def broken_second_page(op, variables):
        if variables.get("cursor") == "2":
            return httpx.Response(200, json={"data": {"locations": {"edges": None}}})
        return None

    platform.override = broken_second_page
    pager = _locations_pager(client, page_size=2)
    items = await pager.collect()

    assert len(items) == 2
    assert pager.halted_on_shape is True
    assert pager.has_next_page is False


# ------------------------------------------------------------------
# ProductCatalogPager
# ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_products_carry_all_variants_and_levels(platform, client):
    levels = [level(f"gid://shopify/Location/{i}", i) for i in range(1, 4)]
    platform.products = [
        product("P1", variants=[variant("V1", levels=levels), variant("V2"), variant("V3", price="7.5")]),
        product("P2", variants=[variant("V4", levels=[level("gid://shopify/Location/1", None)])]),
        product("P3"),
    ]
    catalog = ProductCatalogPager(client, page_size=2, variant_page_size=2, level_page_size=2)

    pages = [p async for p in catalog.pages()]

    assert [[p.id for p in page] for page in pages] == [["P1", "P2"], ["P3"]]
    p1 = pages[0][0]
    assert [v.id for v in p1.variants] == ["V1", "V2", "V3"]
    assert [(lv.location_id, lv.available) for lv in p1.variants[0].levels] == [
        ("gid://shopify/Location/1", 1),
        ("gid://shopify/Location/2", 2),
        ("gid://shopify/Location/3", 3),
    ]
    assert str(p1.variants[2].price) == "7.50"
    # missing "available" quantity reads as 0
    assert pages[0][1].variants[0].levels[0].available == 0
    assert pages[1][0].variants == []

    assert platform.count("GetProductVariants") == 1
    assert platform.count("GetInventoryLevels") == 1
    assert catalog.cursor == "3"
    assert catalog.has_next_page is False


@pytest.mark.asyncio
async def test_product_without_id_halts_paging(platform, client):
    platform.products = [product("P1"), product("P2"), product("P3")]

    def strip_ids(op, variables):
        if op == "GetProducts" and variables.get("cursor") == "1":
            return httpx.Response(200, json={"data": {"products": {
                "edges": [{"node": {"title": "no id"}}],
                "pageInfo": {"hasNextPage": True, "endCursor": "2"},
            }}})
        return None

    platform.override = strip_ids
    catalog = ProductCatalogPager(client, page_size=1)
    pages = [p async for p in catalog.pages()]

    assert [[p.id for p in page] for page in pages] == [["P1"]]
    assert catalog.halted_on_shape is True
    assert catalog.cursor == "1"


@pytest.mark.asyncio
async def test_broken_follow_up_levels_hold_back_the_page(platform, client):
    platform.products = [
        product("P1", variants=[variant("V1", levels=[level("gid://shopify/Location/1", 7)])]),
        product("P2", variants=[variant("V2", levels=[
            level("gid://shopify/Location/2", 1),
            level("gid://shopify/Location/1", 5),
        ])]),
    ]

    def broken_levels(op, variables):
        if op == "GetInventoryLevels":
            return httpx.Response(200, json={"data": {"inventoryItem": {"inventoryLevels": {"edges": None}}}})
        return None

    platform.override = broken_levels
    catalog = ProductCatalogPager(client, page_size=2, level_page_size=1)
    pages = [p async for p in catalog.pages()]

    # no product leaves with only part of its levels
    assert pages == []
    assert catalog.halted_on_shape is True
    assert catalog.has_next_page is False
    assert catalog.cursor is None


@pytest.mark.asyncio
async def test_malformed_inline_variants_halt_paging(platform, client):
    platform.products = [product("P1", variants=[variant("V1")]), product("P2", variants=[variant("V2")])]

    def broken_inline(op, variables):
        if op == "GetProducts":
            return httpx.Response(200, json={"data": {"products": {
                "edges": [{"node": {"id": "P1", "title": "P1", "variants": {"edges": "oops", "pageInfo": {}}}}],
                "pageInfo": {"hasNextPage": False, "endCursor": "1"},
            }}})
        return None

    platform.override = broken_inline
    catalog = ProductCatalogPager(client, page_size=2)
    pages = [p async for p in catalog.pages()]

    assert pages == []
    assert catalog.halted_on_shape is True


@pytest.mark.asyncio
async def test_non_numeric_quantity_halts_paging(platform, client):
    platform.products = [product("P1", variants=[variant("V1", levels=[level("gid://shopify/Location/1", "n/a")])])]

    catalog = ProductCatalogPager(client, page_size=2)
    pages = [p async for p in catalog.pages()]

    assert pages == []
    assert catalog.halted_on_shape is True


def test_parse_int_rejects_non_numbers():
    assert parse_int("12", "q") == 12
    for raw in ("n/a", None, True, [1]):
        with pytest.raises(PageShapeError):
            parse_int(raw, "q")
