# storefront/repositories/cart_repo.py
from typing import Any

from supabase import AsyncClient

from storefront.core.errors import REMOTE_ERRORS, ROW_ERRORS, RemoteStoreError
from storefront.models.cart import CartLine, ProductSnapshot, identity_key, utcnow
from storefront.repositories.product_repo import PRODUCT_COLUMNS, product_from_row

# Unique constraint on cart_items. Missing variants are stored as '' so
# the constraint also covers "no size / no color" lines.
IDENTITY_COLUMNS = "user_id,product_id,selected_size,selected_color"


def line_from_row(row: dict[str, Any]) -> CartLine:
    """
    Map a `cart_items` row (with embedded `products`) to a CartLine.

    Rows whose product has been deleted still map, with an empty snapshot.
    Raises pydantic ValidationError (or KeyError) for rows that do not fit.
    """
    embedded = row.get("products")
    if embedded:
        product = product_from_row(embedded)
    else:
        product = ProductSnapshot(id=str(row["product_id"]))

    product_id, size, color = identity_key(
        product.id, row.get("selected_size"), row.get("selected_color")
    )
    return CartLine(
        product=product,
        quantity=row["quantity"],
        selected_size=size,
        selected_color=color,
        added_at=row.get("created_at") or utcnow(),
    )


def line_to_row(account_id: str, line: CartLine) -> dict[str, Any]:
    return {
        "user_id": account_id,
        "product_id": line.product_id,
        "quantity": line.quantity,
        "selected_size": line.selected_size or "",
        "selected_color": line.selected_color or "",
    }


class CartRepository:
    """
    Remote Cart Store: the per-account `cart_items` table.

    - Pure remote calls, no merge or optimistic logic.
    - Every method raises RemoteStoreError on failure.
    """

    def __init__(self, client: AsyncClient, table: str = "cart_items"):
        self.client = client
        self.table = table

    async def list_for_account(self, account_id: str) -> list[CartLine]:
        try:
            res = await (
                self.client.table(self.table)
                .select(f"*, products({PRODUCT_COLUMNS})")
                .eq("user_id", account_id)
                .order("created_at")
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("fetch cart", exc) from exc
        # A bad row fails the whole fetch so the merge never re-inserts a key.
        try:
            return [line_from_row(row) for row in res.data or []]
        except ROW_ERRORS as exc:
            raise RemoteStoreError("fetch cart", f"malformed cart row: {exc}") from exc

    async def insert_line(self, account_id: str, line: CartLine) -> None:
        try:
            await self.client.table(self.table).insert(line_to_row(account_id, line)).execute()
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("insert cart line", exc) from exc

    async def upsert_line(self, account_id: str, line: CartLine) -> None:
        """
        Insert the line, or overwrite the quantity of the row with the same
        identity key. The quantity written is absolute, not a delta.
        """
        try:
            await (
                self.client.table(self.table)
                .upsert(line_to_row(account_id, line), on_conflict=IDENTITY_COLUMNS)
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("upsert cart line", exc) from exc

    async def delete_line(
        self,
        account_id: str,
        product_id: str,
        size: str | None,
        color: str | None,
    ) -> None:
        try:
            await (
                self.client.table(self.table)
                .delete()
                .eq("user_id", account_id)
                .eq("product_id", product_id)
                .eq("selected_size", size or "")
                .eq("selected_color", color or "")
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("delete cart line", exc) from exc

    async def clear_account(self, account_id: str) -> None:
        try:
            await self.client.table(self.table).delete().eq("user_id", account_id).execute()
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("clear cart", exc) from exc
