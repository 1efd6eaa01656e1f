from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from schemas import LineItem, Product


class CartItem(BaseModel):
    product_id: str
    name: str
    price: Optional[float] = None
    qty: int = Field(1, ge=1)


ProductLike = Union[Product, Dict[str, Any]]


def _product_fields(product: ProductLike) -> Dict[str, Any]:
    if isinstance(product, Product):
        return {"product_id": product.id, "name": product.name, "price": product.price}
    pid = product.get("_id", product.get("id"))
    return {"product_id": pid, "name": product.get("name", "Item"), "price": product.get("price")}


def _product_id(product: Union[ProductLike, str]) -> Optional[str]:
    if isinstance(product, str):
        return product
    pid = _product_fields(product)["product_id"]
    return str(pid) if pid is not None else None


class Cart:
    """
    In-memory cart keyed by product id.

    Entries keep insertion order; changing a quantity never moves an entry.
    A quantity never reaches zero: the entry is dropped instead.
    """

    def __init__(self) -> None:
        self._items: Dict[str, CartItem] = {}

    def add_or_increment(self, product: ProductLike) -> int:
        pid = _product_id(product)
        if not pid:
            raise ValueError("Product has no identifier")
        line = self._items.get(pid)
        if line:
            line.qty += 1
        else:
            fields = _product_fields(product)
            fields["product_id"] = pid
            line = CartItem(**fields)
            self._items[pid] = line
        return line.qty

    def decrement_or_remove(self, product: Union[ProductLike, str]) -> int:
        pid = _product_id(product)
        line = self._items.get(pid) if pid else None
        if not line:
            return 0
        if line.qty <= 1:
            del self._items[pid]
            return 0
        line.qty -= 1
        return line.qty

    def quantity_of(self, product_id: str) -> int:
        line = self._items.get(str(product_id))
        return line.qty if line else 0

    def total_item_count(self) -> int:
        return sum(line.qty for line in self._items.values())

    def distinct_count(self) -> int:
        return len(self._items)

    def items(self) -> List[CartItem]:
        return [line.model_copy() for line in self._items.values()]

    def line_items(self) -> List[LineItem]:
        return [LineItem(name=line.name, qty=line.qty, price=line.price) for line in self._items.values()]

    def clear(self) -> None:
        self._items.clear()

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id: object) -> bool:
        return str(product_id) in self._items
