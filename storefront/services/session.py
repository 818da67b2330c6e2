# storefront/services/session.py
import logging
from typing import Awaitable, Callable

from sqlalchemy.engine import Engine
from supabase import AsyncClient

from storefront.core.config import Settings
from storefront.core.errors import AdvisoryLog
from storefront.core.supabase_client import apply_access_token
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.local_store import LocalEphemeralStore
from storefront.repositories.notification_repo import NotificationRepository
from storefront.services.cart_sync import CartSyncEngine
from storefront.services.notification_inbox import NotificationInbox, NotificationSurface
from storefront.services.remote_writes import RemoteWriteScheduler

logger = logging.getLogger(__name__)

Authorizer = Callable[[str | None], Awaitable[None]]


class StorefrontSession:
    """
    Single owner of cart and notification state for this device.

    Lifecycle:
      - init(): guest load, optionally followed by an account attach
      - set_account(): account transitions (sign-in, sign-out, switch)
      - dispose(): release the realtime channel and flush pending writes

    Routers get it from `app.state.storefront`; nothing else holds it.
    """

    def __init__(
        self,
        cart: CartSyncEngine,
        inbox: NotificationInbox,
        scheduler: RemoteWriteScheduler,
        advisories: AdvisoryLog,
        authorize: Authorizer | None = None,
    ):
        self.cart = cart
        self.inbox = inbox
        self.scheduler = scheduler
        self.advisories = advisories
        self.authorize = authorize

    @property
    def account_id(self) -> str | None:
        return self.cart.account_id

    async def init(self, account_id: str | None = None, access_token: str | None = None) -> None:
        self.cart.load()
        if account_id is not None:
            await self.set_account(account_id, access_token)

    async def set_account(self, account_id: str | None, access_token: str | None = None) -> None:
        """
        Move to another account (or to guest mode with None).

        Same account => the access token is refreshed, and a merge or
        realtime subscription that failed earlier is retried. Otherwise the
        old account is detached before the new one is merged and attached.
        """
        if self.authorize is not None:
            await self.authorize(access_token)

        if account_id == self.account_id:
            if account_id is not None:
                await self._retry_degraded(account_id)
            return

        if self.account_id is not None:
            logger.info("Detaching account %s", self.account_id)
            await self.inbox.detach()
            self.cart.detach_account()

        if account_id is None:
            return

        logger.info("Attaching account %s", account_id)
        await self.cart.attach_account(account_id)
        await self.inbox.attach(account_id)

    async def _retry_degraded(self, account_id: str) -> None:
        if not self.cart.remote_synced:
            logger.info("Retrying cart merge for %s", account_id)
            await self.cart.attach_account(account_id)
        if not self.inbox.subscribed:
            await self.inbox.attach(account_id)

    async def dispose(self) -> None:
        await self.inbox.detach()
        await self.scheduler.drain()


def create_storefront_session(
    client: AsyncClient,
    local_engine: Engine,
    settings: Settings,
    surface: NotificationSurface | None = None,
) -> StorefrontSession:
    """Wire repositories and services for one device process."""
    advisories = AdvisoryLog(limit=settings.ADVISORY_LIMIT)
    scheduler = RemoteWriteScheduler(
        advisories,
        serialize_per_key=settings.SERIALIZE_REMOTE_WRITES,
    )
    cart = CartSyncEngine(
        LocalEphemeralStore(local_engine),
        CartRepository(client, settings.CART_TABLE),
        scheduler,
        advisories,
        cart_key=settings.CART_STORAGE_KEY,
        saved_key=settings.SAVED_STORAGE_KEY,
    )
    inbox = NotificationInbox(
        NotificationRepository(client, settings.NOTIFICATIONS_TABLE),
        scheduler,
        advisories,
        surface=surface,
    )

    async def authorize(access_token: str | None) -> None:
        await apply_access_token(client, access_token or settings.SUPABASE_KEY)

    return StorefrontSession(cart, inbox, scheduler, advisories, authorize=authorize)
