# inventory_pulse/sync/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from inventory_pulse.errors import PageShapeError

AVAILABLE = "available"


@dataclass
class Page:
    items: List[Dict[str, Any]]
    has_next_page: bool
    end_cursor: Optional[str]


@dataclass
class ExternalLocation:
    id: str
    name: str

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "ExternalLocation":
        if not node.get("id"):
            raise PageShapeError("location node without id")
        return cls(id=str(node["id"]), name=str(node.get("name") or node["id"]))


@dataclass
class ExternalLevel:
    location_id: str
    available: int  # "available" named quantity, 0 when the platform omits it

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> Optional["ExternalLevel"]:
        location_id = ((node.get("location") or {}).get("id"))
        if not location_id:
            return None
        qty = 0
        for q in node.get("quantities") or []:
            if (q or {}).get("name") == AVAILABLE and q.get("quantity") is not None:
                qty = parse_int(q["quantity"], f"quantity at {location_id}")
                break
        return cls(location_id=str(location_id), available=qty)


@dataclass
class ExternalVariant:
    id: str
    title: Optional[str]
    sku: Optional[str]
    price: Decimal
    inventory_quantity: Optional[int]
    inventory_item_id: Optional[str]
    levels: List[ExternalLevel] = field(default_factory=list)

    @classmethod
    def from_node(cls, node: Dict[str, Any], levels: List[ExternalLevel]) -> "ExternalVariant":
        if not node.get("id"):
            raise PageShapeError("variant node without id")
        item = node.get("inventoryItem") or {}
        qty = node.get("inventoryQuantity")
        return cls(
            id=str(node["id"]),
            title=node.get("title"),
            sku=node.get("sku"),
            price=parse_price(node.get("price")),
            inventory_quantity=parse_int(qty, f"inventoryQuantity of {node['id']}") if qty is not None else None,
            inventory_item_id=item.get("id"),
            levels=levels,
        )


@dataclass
class ExternalProduct:
    id: str
    title: str
    vendor: str
    product_type: Optional[str]
    tags: List[str]
    variants: List[ExternalVariant] = field(default_factory=list)

    @classmethod
    def from_node(cls, node: Dict[str, Any], variants: List[ExternalVariant]) -> "ExternalProduct":
        if not node.get("id"):
            raise PageShapeError("product node without id")
        return cls(
            id=str(node["id"]),
            title=str(node.get("title") or ""),
            vendor=node.get("vendor") or "Unknown",
            product_type=node.get("productType"),
            tags=list(node.get("tags") or []),
            variants=variants,
        )


def parse_int(raw: Any, label: str) -> int:
    """Quantities must be whole numbers; anything else is a malformed node."""
    if isinstance(raw, bool):
        raise PageShapeError(f"{label}: not an integer: {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise PageShapeError(f"{label}: not an integer: {raw!r}") from None


def parse_price(raw: Any) -> Decimal:
    """Platform prices arrive as strings; anything unparseable becomes 0."""
    if raw is None or raw == "":
        return Decimal("0")
    try:
        return Decimal(str(raw)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return Decimal("0")
