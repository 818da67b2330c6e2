# storefront/routers/session.py
from fastapi import APIRouter, Depends

from storefront.core.auth import account_id_from_claims, decode_access_token, require_access_token
from storefront.core.deps import get_storefront
from storefront.schemas.session import SessionRead
from storefront.services.session import StorefrontSession

router = APIRouter(prefix="/session", tags=["Session"])


def build_session_read(storefront: StorefrontSession) -> SessionRead:
    return SessionRead(
        account_id=storefront.account_id,
        is_authenticated=storefront.account_id is not None,
        remote_synced=storefront.cart.remote_synced,
        live_notifications=storefront.inbox.subscribed,
        permission=storefront.inbox.permission,
    )


@router.get("", response_model=SessionRead)
async def read_session(storefront: StorefrontSession = Depends(get_storefront)):
    """Which account (if any) this device is attached to."""
    return build_session_read(storefront)


@router.post("", response_model=SessionRead)
async def attach_account(
    token: str = Depends(require_access_token),
    storefront: StorefrontSession = Depends(get_storefront),
):
    """
    Attach the account of the bearer token.

    Flow:
      1. Verify the Supabase JWT and take 'sub' as the account id.
      2. First attach for this account => device cart is merged into
         the account cart and the realtime inbox is opened.
      3. Same account again => only the access token is refreshed.

    Auth:
      - Requires valid Supabase JWT.
    """
    account_id = account_id_from_claims(decode_access_token(token))
    await storefront.set_account(account_id, token)
    return build_session_read(storefront)


@router.delete("", response_model=SessionRead)
async def detach_account(storefront: StorefrontSession = Depends(get_storefront)):
    """Sign out: close the inbox channel and return to the device cart."""
    await storefront.set_account(None)
    return build_session_read(storefront)
