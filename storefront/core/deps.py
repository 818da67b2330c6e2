# storefront/core/deps.py
from fastapi import Request

from storefront.repositories.product_repo import ProductRepository
from storefront.services.session import StorefrontSession


def get_storefront(request: Request) -> StorefrontSession:
    """
    FastAPI dependency returning the device's StorefrontSession.

    Usage:

        @router.get("/example")
        async def example(storefront: StorefrontSession = Depends(get_storefront)):
            ...
    """
    return request.app.state.storefront


def get_product_repo(request: Request) -> ProductRepository:
    return request.app.state.products
