# storefront/schemas/cart.py
from datetime import datetime

from sqlmodel import SQLModel, Field

from storefront.core.errors import Advisory


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    product_id: str
    quantity: int = Field(default=1, gt=0)
    size: str | None = None
    color: str | None = None


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart item.

    quantity <= 0 removes the item.
    """

    quantity: int
    size: str | None = None
    color: str | None = None


class CartItemRead(SQLModel):
    """
    Read model for a single cart line, including line_total.
    """

    product_id: str
    product_name: str
    product_image_url: str | None = None
    unit_price: float
    quantity: int
    size: str | None = None
    color: str | None = None
    line_total: float
    added_at: datetime


class SavedItemRead(SQLModel):
    product_id: str
    product_name: str
    product_image_url: str | None = None
    unit_price: float
    saved_at: datetime


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartItemRead]
    saved: list[SavedItemRead]
    cart_total: float
    cart_count: int
    saved_count: int
    is_authenticated: bool
    is_syncing: bool
    advisories: list[Advisory] = []
