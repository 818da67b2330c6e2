# storefront/models/cart.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

# (product_id, selected_size, selected_color)
IdentityKey = tuple[str, str | None, str | None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductSnapshot(SQLModel):
    """
    Product fields a cart needs for display and totals.

    Captured when the product is added so totals never need I/O.
    """

    id: str
    name: str = ""
    price: float = Field(default=0.0, ge=0)
    image_url: str | None = None
    stock: int | None = Field(default=None, ge=0)


class CartLine(SQLModel):
    """
    One distinct purchasable configuration in a cart.

    A cart never holds two lines with the same `key`.
    """

    product: ProductSnapshot
    quantity: int = Field(ge=1, description="Must be >= 1")
    selected_size: str | None = None
    selected_color: str | None = None
    added_at: datetime = Field(default_factory=utcnow)

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def key(self) -> IdentityKey:
        return (self.product.id, self.selected_size, self.selected_color)

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class SavedLine(SQLModel):
    """
    Deferred purchase intent ("save for later"), keyed by product only.
    """

    product: ProductSnapshot
    saved_at: datetime = Field(default_factory=utcnow)

    @property
    def product_id(self) -> str:
        return self.product.id


def identity_key(
    product_id: str,
    size: str | None = None,
    color: str | None = None,
) -> IdentityKey:
    # Empty strings come back from the remote table for "no variant".
    return (product_id, size or None, color or None)
