# storefront/repositories/product_repo.py
from typing import Any

from supabase import AsyncClient

from storefront.core.errors import REMOTE_ERRORS, ROW_ERRORS, RemoteStoreError
from storefront.models.cart import ProductSnapshot

# Columns needed to build a ProductSnapshot; also used as a PostgREST embed.
PRODUCT_COLUMNS = "id, name, price, images, stock"


def product_from_row(row: dict[str, Any]) -> ProductSnapshot:
    """
    Map a `products` row to a snapshot.

    `images` is a text[] column; the first entry is the hero image.
    Negative price/stock values from the catalog are clamped to 0.
    """
    images = row.get("images") or []
    stock = row.get("stock")
    return ProductSnapshot(
        id=str(row["id"]),
        name=row.get("name") or "",
        price=max(float(row.get("price") or 0), 0.0),
        image_url=images[0] if images else None,
        stock=max(int(stock), 0) if stock is not None else None,
    )


class ProductRepository:
    """
    Read-only product lookup used by the cart routes.
    """

    def __init__(self, client: AsyncClient, table: str = "products"):
        self.client = client
        self.table = table

    async def get_by_id(self, product_id: str) -> ProductSnapshot | None:
        try:
            res = await (
                self.client.table(self.table)
                .select(PRODUCT_COLUMNS)
                .eq("id", product_id)
                .limit(1)
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("product lookup", exc) from exc

        rows = res.data or []
        if not rows:
            return None
        try:
            return product_from_row(rows[0])
        except ROW_ERRORS as exc:
            raise RemoteStoreError("product lookup", f"malformed product row: {exc}") from exc
