# storefront/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.deps import get_product_repo, get_storefront
from storefront.core.errors import RemoteStoreError
from storefront.models.cart import ProductSnapshot, identity_key
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import (
    CartItemCreate,
    CartItemRead,
    CartItemUpdate,
    CartSummary,
    SavedItemRead,
)
from storefront.services.session import StorefrontSession

router = APIRouter(tags=["Cart"])


# ---- internal helpers ----


async def _get_valid_product(products: ProductRepository, product_id: str) -> ProductSnapshot:
    try:
        product = await products.get_by_id(product_id)
    except RemoteStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Product catalog unavailable",
        )
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )
    return product


def _check_stock(product: ProductSnapshot, quantity: int) -> None:
    if product.stock is not None and quantity > product.stock:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Not enough stock available",
        )


def build_cart_summary(storefront: StorefrontSession) -> CartSummary:
    """
    Return full cart summary:
      - cart lines (with line_total) and saved lines
      - derived totals
      - advisories raised since the last response
    """
    cart = storefront.cart
    items = [
        CartItemRead(
            product_id=line.product_id,
            product_name=line.product.name,
            product_image_url=line.product.image_url,
            unit_price=line.product.price,
            quantity=line.quantity,
            size=line.selected_size,
            color=line.selected_color,
            line_total=line.line_total,
            added_at=line.added_at,
        )
        for line in cart.cart_lines
    ]
    saved = [
        SavedItemRead(
            product_id=s.product_id,
            product_name=s.product.name,
            product_image_url=s.product.image_url,
            unit_price=s.product.price,
            saved_at=s.saved_at,
        )
        for s in cart.saved_lines
    ]
    return CartSummary(
        items=items,
        saved=saved,
        cart_total=cart.cart_total,
        cart_count=cart.cart_count,
        saved_count=cart.saved_count,
        is_authenticated=cart.is_authenticated,
        is_syncing=cart.is_syncing,
        advisories=storefront.advisories.drain(),
    )


# -------- Cart --------


@router.get("/cart", response_model=CartSummary)
async def get_my_cart(storefront: StorefrontSession = Depends(get_storefront)):
    """Get this device's cart summary."""
    return build_cart_summary(storefront)


@router.post("/cart", response_model=CartSummary)
async def add_to_cart(
    payload: CartItemCreate,
    storefront: StorefrontSession = Depends(get_storefront),
    products: ProductRepository = Depends(get_product_repo),
):
    """
    Add product to the cart.

    Rules:
      - product must exist
      - quantity + existing_quantity <= stock
    """
    product = await _get_valid_product(products, payload.product_id)

    key = identity_key(product.id, payload.size, payload.color)
    existing = next((line for line in storefront.cart.cart_lines if line.key == key), None)
    _check_stock(product, payload.quantity + (existing.quantity if existing else 0))

    storefront.cart.add_to_cart(product, payload.quantity, payload.size, payload.color)
    return build_cart_summary(storefront)


@router.patch("/cart/{product_id}", response_model=CartSummary)
async def update_cart_item(
    product_id: str,
    payload: CartItemUpdate,
    storefront: StorefrontSession = Depends(get_storefront),
):
    """
    Replace the quantity of a product in the cart.

    quantity <= 0 removes it. Without size/color every variant line
    of the product is updated.
    """
    if payload.size is None and payload.color is None:
        lines = [line for line in storefront.cart.cart_lines if line.product_id == product_id]
    else:
        key = identity_key(product_id, payload.size, payload.color)
        lines = [line for line in storefront.cart.cart_lines if line.key == key]
    if not lines:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not in cart",
        )
    _check_stock(lines[0].product, payload.quantity)

    storefront.cart.update_quantity(product_id, payload.quantity, payload.size, payload.color)
    return build_cart_summary(storefront)


@router.delete("/cart/{product_id}", response_model=CartSummary)
async def remove_cart_item(
    product_id: str,
    size: str | None = None,
    color: str | None = None,
    storefront: StorefrontSession = Depends(get_storefront),
):
    """
    Remove a product from the cart.

    Pass size/color as query parameters to remove a single variant line.
    """
    if not storefront.cart.remove_from_cart(product_id, size, color):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found in cart",
        )
    return build_cart_summary(storefront)


@router.delete("/cart", response_model=CartSummary)
async def clear_cart(storefront: StorefrontSession = Depends(get_storefront)):
    """Clear the entire cart."""
    storefront.cart.clear_cart()
    return build_cart_summary(storefront)


@router.post("/cart/{product_id}/save", response_model=CartSummary)
async def save_for_later(
    product_id: str,
    storefront: StorefrontSession = Depends(get_storefront),
):
    """Move every line of a product from the cart to the saved list."""
    if storefront.cart.save_for_later(product_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found in cart",
        )
    return build_cart_summary(storefront)


# -------- Saved for later --------


@router.get("/saved", response_model=CartSummary)
async def get_saved(storefront: StorefrontSession = Depends(get_storefront)):
    return build_cart_summary(storefront)


@router.post("/saved/{product_id}/move", response_model=CartSummary)
async def move_to_cart(
    product_id: str,
    storefront: StorefrontSession = Depends(get_storefront),
):
    """Move a saved product back into the cart with quantity 1."""
    if storefront.cart.move_to_cart(product_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found in saved list",
        )
    return build_cart_summary(storefront)


@router.delete("/saved/{product_id}", response_model=CartSummary)
async def remove_saved_item(
    product_id: str,
    storefront: StorefrontSession = Depends(get_storefront),
):
    if not storefront.cart.remove_from_saved(product_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found in saved list",
        )
    return build_cart_summary(storefront)
