"""
Database Schemas for the Bricxo construction-materials storefront

Each Pydantic model below corresponds to a MongoDB collection (the table name
is given in the class docstring). Line items and cart entries are embedded
documents, not collections.
"""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class OrderStatus(str, Enum):
    pending = "Pending"
    accepted = "Accepted"
    out_for_delivery = "Out for Delivery"
    delivered = "Delivered"
    cancelled = "Cancelled"


CASH_ON_DELIVERY = "Cash on Delivery"


class Product(BaseModel):
    """products"""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id", description="Row identifier")
    name: str = Field(..., min_length=1, description="Product name")
    price: Optional[float] = Field(None, ge=0, description="Unit price; None shows as N/A")
    category: Optional[str] = Field(None, description="Category name this product is listed under")
    image: Optional[str] = Field(None, description="Embedded data URI or remote URL")
    featured: bool = False


class Category(BaseModel):
    """categories"""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id")
    name: str = Field(..., min_length=1)
    icon: Optional[str] = Field(None, description="Emoji glyph, data:image payload or URL")
    color: str = "bg-gray-100"


class User(BaseModel):
    """users"""
    phone: str = Field(..., description="Primary key and session identity")
    name: str
    address: str = Field(..., description="Free-text delivery address")


class LineItem(BaseModel):
    """Frozen copy of a cart entry, independent of the live product."""
    name: str
    qty: int = Field(..., ge=1)
    price: Optional[float] = None


class Order(BaseModel):
    """orders"""
    id: str = Field(..., description="{phone}-{sequence}")
    user_phone: str
    customer_name: str
    address: str
    items: List[LineItem]
    status: OrderStatus = OrderStatus.pending
    payment_mode: str = CASH_ON_DELIVERY
    timestamp: str = Field(..., description="ISO-8601 creation time (UTC)")
