# inventory_pulse/sync/pager.py
"""
Cursor pagination over the platform's GraphQL connections.

CatalogPager walks one connection (locations, products, a product's variants,
an inventory item's levels). ProductCatalogPager stacks three of them so every
product handed out carries all of its variants and all of their levels.

Pages are strictly sequential: the cursor moves only when the consumer asks
for the next page, so whatever it wrote for the previous page is already
committed.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from inventory_pulse.errors import PageShapeError, PlatformApiError
from inventory_pulse.sync.queries import (
    INVENTORY_LEVELS_QUERY,
    PRODUCT_VARIANTS_QUERY,
    PRODUCTS_QUERY,
)
from inventory_pulse.sync.types import (
    ExternalLevel,
    ExternalProduct,
    ExternalVariant,
    Page,
)

logger = logging.getLogger(__name__)


def parse_connection(conn: Any, label: str) -> Page:
    """Turn `{edges: [{node}], pageInfo}` into a Page or raise PageShapeError."""
    if not isinstance(conn, dict):
        raise PageShapeError(f"{label}: connection missing")
    edges = conn.get("edges")
    info = conn.get("pageInfo")
    if not isinstance(edges, list) or not isinstance(info, dict):
        raise PageShapeError(f"{label}: edges/pageInfo missing")

    items = [e["node"] for e in edges if isinstance(e, dict) and isinstance(e.get("node"), dict)]
    has_next = bool(info.get("hasNextPage"))
    end_cursor = info.get("endCursor")
    if has_next and not end_cursor:
        raise PageShapeError(f"{label}: hasNextPage without endCursor")
    if has_next and not items:
        raise PageShapeError(f"{label}: empty page claims more pages")
    return Page(items=items, has_next_page=has_next, end_cursor=end_cursor)


def _dig(data: Dict[str, Any], path: Sequence[str]) -> Any:
    cur: Any = data
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


class CatalogPager:
    """
    Forward-only cursor iterator over one connection.

    Usage:
        pager = CatalogPager(client, LOCATIONS_QUERY, ("locations",), page_size=50)
        async for page in pager:
            ...
        resume_from = pager.cursor
    """

    def __init__(
        self,
        client,
        query: str,
        connection_path: Sequence[str],
        *,
        page_size: int,
        variables: Optional[Dict[str, Any]] = None,
        start_cursor: Optional[str] = None,
        label: Optional[str] = None,
    ):
        self.client = client
        self.query = query
        self.connection_path = tuple(connection_path)
        self.page_size = page_size
        self.variables = dict(variables or {})
        self.label = label or ".".join(self.connection_path)

        # end cursor of the last page the consumer finished with
        self.cursor: Optional[str] = start_cursor
        self.has_next_page = True
        self.pages_fetched = 0
        self.halted_on_shape = False

    def __aiter__(self) -> AsyncIterator[Page]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Page]:
        while self.has_next_page:
            variables = {**self.variables, "first": self.page_size, "cursor": self.cursor}
            try:
                data = await self.client.execute(self.query, variables)
            except PlatformApiError as e:
                self.has_next_page = False
                logger.error("[Pager][%s] fetch failed after %d pages: %s", self.label, self.pages_fetched, e)
                raise

            try:
                page = parse_connection(_dig(data, self.connection_path), self.label)
            except PageShapeError as e:
                self.has_next_page = False
                self.halted_on_shape = True
                logger.warning("[Pager][%s] malformed page, stopping: %s", self.label, e)
                return

            self.pages_fetched += 1
            yield page

            # consumer is done with the page
            self.cursor = page.end_cursor
            self.has_next_page = page.has_next_page

    async def collect(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        async for page in self:
            out.extend(page.items)
        return out


class ProductCatalogPager:
    """
    Product pages with variants (inline batch) and inventory levels (inline
    batch) completed through follow-up queries when a nested connection has
    more pages.

    Usage:
        catalog = ProductCatalogPager(client, page_size=10)
        async for products in catalog.pages():
            await writer.write_page(products)
    """

    def __init__(
        self,
        client,
        *,
        page_size: int,
        variant_page_size: int = 20,
        level_page_size: int = 10,
        start_cursor: Optional[str] = None,
    ):
        self.client = client
        self.variant_page_size = variant_page_size
        self.level_page_size = level_page_size
        self.pager = CatalogPager(
            client,
            PRODUCTS_QUERY,
            ("products",),
            page_size=page_size,
            variables={"variantCount": variant_page_size, "levelCount": level_page_size},
            start_cursor=start_cursor,
            label="products",
        )

    @property
    def cursor(self) -> Optional[str]:
        return self.pager.cursor

    @property
    def has_next_page(self) -> bool:
        return self.pager.has_next_page

    @property
    def pages_fetched(self) -> int:
        return self.pager.pages_fetched

    @property
    def halted_on_shape(self) -> bool:
        return self.pager.halted_on_shape

    async def pages(self) -> AsyncIterator[List[ExternalProduct]]:
        async for page in self.pager:
            try:
                products = [await self._complete_product(node) for node in page.items]
            except PlatformApiError:
                self.pager.has_next_page = False
                raise
            except PageShapeError as e:
                self.pager.has_next_page = False
                self.pager.halted_on_shape = True
                logger.warning("[Pager][products] malformed product data, stopping before this page: %s", e)
                return
            yield products

    async def _complete_product(self, node: Dict[str, Any]) -> ExternalProduct:
        product_id = node.get("id")
        if not product_id:
            raise PageShapeError("product node without id")

        variant_nodes = await self._complete_connection(
            node.get("variants"),
            PRODUCT_VARIANTS_QUERY,
            ("product", "variants"),
            variables={"productId": product_id, "levelCount": self.level_page_size},
            page_size=self.variant_page_size,
            label=f"variants:{product_id}",
        )

        variants: List[ExternalVariant] = []
        for vnode in variant_nodes:
            if not vnode.get("id"):
                logger.warning("[Pager][variants:%s] skipping variant node without id", product_id)
                continue
            item = vnode.get("inventoryItem") or {}
            level_nodes: List[Dict[str, Any]] = []
            if item.get("id"):
                level_nodes = await self._complete_connection(
                    item.get("inventoryLevels"),
                    INVENTORY_LEVELS_QUERY,
                    ("inventoryItem", "inventoryLevels"),
                    variables={"inventoryItemId": item["id"]},
                    page_size=self.level_page_size,
                    label=f"levels:{item['id']}",
                )
            levels = [lvl for lvl in (ExternalLevel.from_node(n) for n in level_nodes) if lvl is not None]
            variants.append(ExternalVariant.from_node(vnode, levels))

        return ExternalProduct.from_node(node, variants)

    async def _complete_connection(
        self,
        conn: Any,
        query: str,
        path: Sequence[str],
        *,
        variables: Dict[str, Any],
        page_size: int,
        label: str,
    ) -> List[Dict[str, Any]]:
        """Inline first page + any remaining pages of a nested connection."""
        if conn is None:
            return []
        if isinstance(conn, dict) and "pageInfo" not in conn:
            # inline connection selected without pageInfo: take it as complete
            conn = {**conn, "pageInfo": {"hasNextPage": False, "endCursor": None}}
        # a product with partial variants or levels must not reach the writer
        first = parse_connection(conn, label)

        nodes = list(first.items)
        if first.has_next_page:
            rest = CatalogPager(
                self.client,
                query,
                path,
                page_size=page_size,
                variables=variables,
                start_cursor=first.end_cursor,
                label=label,
            )
            nodes.extend(await rest.collect())
            if rest.halted_on_shape:
                raise PageShapeError(f"{label}: follow-up page malformed after {len(nodes)} nodes")
        return nodes
