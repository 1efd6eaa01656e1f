from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

ALL = "All"

# Bulk materials are priced on request rather than sold from the grid.
MAIN_MATERIALS = ["Sand", "Bricks", "Aggregates", "Cement", "TMT Bars", "Steel"]

Row = Mapping[str, Any]


def _name(row: Row) -> str:
    return str(row.get("name") or "")


def search_products(products: List[Row], query: Optional[str]) -> List[Row]:
    q = (query or "").strip().lower()
    if not q:
        return list(products)
    return [p for p in products if q in _name(p).lower()]


def search_categories(categories: List[Row], query: Optional[str]) -> List[Row]:
    q = (query or "").strip().lower()
    if not q:
        return list(categories)
    return [c for c in categories if q in _name(c).lower()]


def filter_by_category(products: List[Row], category: Optional[str]) -> List[Row]:
    if not category or category == ALL:
        return list(products)
    return [p for p in products if p.get("category") == category]


def featured(products: List[Row]) -> List[Row]:
    return [p for p in products if p.get("featured")]


def browse(products: List[Row], query: Optional[str] = None, category: Optional[str] = None,
           featured_only: bool = False) -> List[Row]:
    items = filter_by_category(products, category)
    items = search_products(items, query)
    if featured_only:
        items = featured(items)
    return items


def shop_categories(categories: List[Row]) -> List[Row]:
    """Categories that are not one of the quoted main materials."""
    main = [m.lower() for m in MAIN_MATERIALS]
    return [c for c in categories if not any(m in _name(c).lower() for m in main)]


def icon_kind(icon: Optional[str]) -> str:
    """Tell an embedded image, a remote URL and an emoji glyph apart by prefix."""
    if not icon:
        return "none"
    value = icon.strip()
    if value.startswith("data:image"):
        return "image"
    if value.startswith(("http://", "https://")):
        return "url"
    return "emoji"


def with_icon_kind(categories: List[Row]) -> List[Dict[str, Any]]:
    return [{**c, "icon_kind": icon_kind(c.get("icon"))} for c in categories]


def quote_link(item: str, owner_phone: str) -> str:
    text = f"Hi Bricxo, I need a quote for *{item}*."
    return f"https://wa.me/{owner_phone}?text={quote(text, safe='')}"
