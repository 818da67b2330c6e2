# storefront/core/supabase_client.py
from supabase import AsyncClient, acreate_client

from storefront.core.config import Settings


async def create_supabase_client(settings: Settings) -> AsyncClient:
    """
    Create an async Supabase client with the anon/public key.

    The async client is required for Realtime channels; the same client
    also serves PostgREST table calls. It is created once in the app
    lifespan and shared by every repository.

    Note: This client still respects RLS. The shopper's access token is
    attached with `client.postgrest.auth(token)` once an account is active.
    """
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


async def apply_access_token(client: AsyncClient, token: str) -> None:
    """
    Make table and realtime calls act as the signed-in shopper.

    Pass the anon key to go back to guest mode.
    """
    client.postgrest.auth(token)
    await client.realtime.set_auth(token)
