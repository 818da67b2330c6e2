# storefront/services/notification_inbox.py
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from storefront.core.errors import AdvisoryLog, NoActiveAccount, RemoteStoreError
from storefront.models.notification import (
    NotificationKind,
    NotificationRecord,
    PermissionStatus,
    ScheduledNotification,
)
from storefront.repositories.notification_repo import (
    NotificationRepository,
    RealtimeSubscription,
)
from storefront.services.remote_writes import RemoteWriteScheduler

logger = logging.getLogger(__name__)

CART_REMINDER_TRIGGER = "cart_abandoned"

# Titles/bodies for order status pushes; unknown statuses get a generic one.
ORDER_STATUS_MESSAGES: dict[str, tuple[str, str]] = {
    "confirmed": (
        "Order Confirmed! 🎉",
        "Your order #{order_id} has been confirmed and is being prepared.",
    ),
    "shipped": (
        "Your Order is On Its Way! 📦",
        "Great news! Order #{order_id} has been shipped and is on its way to you.",
    ),
    "delivered": (
        "Delivery Complete! ✅",
        "Your order #{order_id} has been delivered. Enjoy your purchase!",
    ),
    "cancelled": (
        "Order Cancelled",
        "Order #{order_id} has been cancelled. Refund will be processed within 3-5 days.",
    ),
}


class NotificationSurface(Protocol):
    """OS-level notification display (toast, desktop banner, ...)."""

    def permission(self) -> PermissionStatus: ...

    async def request_permission(self) -> PermissionStatus: ...

    def show(self, title: str, body: str) -> None: ...


class LogNotificationSurface:
    """
    Surface that writes notifications to the `storefront.os_notifications`
    logger. Used when the host has no native notification bridge.
    """

    def __init__(self, status: PermissionStatus = PermissionStatus.DENIED):
        self.status = status
        self.logger = logging.getLogger("storefront.os_notifications")

    def permission(self) -> PermissionStatus:
        return self.status

    async def request_permission(self) -> PermissionStatus:
        if self.status != PermissionStatus.UNSUPPORTED:
            self.status = PermissionStatus.GRANTED
        return self.status

    def show(self, title: str, body: str) -> None:
        self.logger.info("[NOTIFY] %s | %s", title, body)


def sort_newest_first(records: list[NotificationRecord]) -> list[NotificationRecord]:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


class ScheduledNotificationQueue:
    """
    Notifications waiting for a delay to elapse.

    Owned by one NotificationInbox; `cancel_all()` runs when the inbox
    detaches, so nothing fires for an account that is no longer active.
    """

    def __init__(self, publish: Callable[[ScheduledNotification], Awaitable[None]]):
        self._publish = publish
        self._items: dict[str, ScheduledNotification] = {}
        self._timers: dict[str, asyncio.Task] = {}

    def schedule(
        self,
        trigger: str,
        kind: NotificationKind,
        title: str,
        body: str,
        delay: timedelta,
        payload: dict[str, Any] | None = None,
    ) -> ScheduledNotification:
        item = ScheduledNotification(
            id=f"notif-{uuid.uuid4().hex[:12]}",
            trigger=trigger,
            kind=kind,
            title=title,
            body=body,
            scheduled_for=datetime.now(timezone.utc) + delay,
            payload=payload,
        )
        self._items[item.id] = item
        self._timers[item.id] = asyncio.get_running_loop().create_task(
            self._fire_later(item, max(delay.total_seconds(), 0.0))
        )
        return item

    async def _fire_later(self, item: ScheduledNotification, seconds: float) -> None:
        await asyncio.sleep(seconds)
        self._items.pop(item.id, None)
        self._timers.pop(item.id, None)
        await self._publish(item)

    def cancel(self, notification_id: str) -> bool:
        self._items.pop(notification_id, None)
        timer = self._timers.pop(notification_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_trigger(self, trigger: str) -> int:
        ids = [item.id for item in self._items.values() if item.trigger == trigger]
        for notification_id in ids:
            self.cancel(notification_id)
        return len(ids)

    def cancel_all(self) -> None:
        for notification_id in list(self._timers):
            self.cancel(notification_id)

    def pending(self) -> list[ScheduledNotification]:
        return sorted(self._items.values(), key=lambda item: item.scheduled_for)


class NotificationInbox:
    """
    In-memory, newest-first notification list for the active account.

    Responsibilities:
      - initial fetch on attach, realtime INSERT feed while attached
      - optimistic read/clear edits mirrored through the scheduler
      - OS-level surfacing gated by the surface's permission
      - publishing (immediate or scheduled) notifications to the remote
        store; they come back through the realtime feed
    """

    def __init__(
        self,
        repo: NotificationRepository,
        scheduler: RemoteWriteScheduler,
        advisories: AdvisoryLog,
        surface: NotificationSurface | None = None,
    ):
        self.repo = repo
        self.scheduler = scheduler
        self.advisories = advisories
        self.surface: NotificationSurface = surface or LogNotificationSurface()
        self.queue = ScheduledNotificationQueue(self._publish_scheduled)

        self.records: list[NotificationRecord] = []
        self.account_id: str | None = None
        self._subscription: RealtimeSubscription | None = None

    @property
    def unread_count(self) -> int:
        return sum(1 for r in self.records if not r.read)

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ---- lifecycle ----

    async def attach(self, account_id: str) -> None:
        """
        Fetch the account's notifications, then open the realtime feed.

        Either step may fail independently; the list then stays at the
        last snapshot and an advisory is recorded.
        """
        if self.account_id is not None:
            await self.detach()
        self.account_id = account_id

        try:
            self.records = sort_newest_first(await self.repo.list_for_account(account_id))
        except RemoteStoreError as exc:
            logger.warning("Fetching notifications for %s failed: %s", account_id, exc)
            self.advisories.add("notifications", "Couldn't load your notifications.")

        try:
            self._subscription = await self.repo.subscribe_inserts(account_id, self._on_insert)
        except RemoteStoreError as exc:
            logger.warning("Realtime subscription for %s failed: %s", account_id, exc)
            self.advisories.add(
                "notifications",
                "Live notifications are unavailable. Reopen the app to retry.",
            )

    async def detach(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.release()
        self.queue.cancel_all()
        self.records = []
        self.account_id = None

    @asynccontextmanager
    async def attached(self, account_id: str) -> AsyncIterator["NotificationInbox"]:
        await self.attach(account_id)
        try:
            yield self
        finally:
            await self.detach()

    # ---- realtime ----

    def _on_insert(self, record: NotificationRecord) -> None:
        if self.account_id is None:
            return
        if record.account_id is not None and record.account_id != self.account_id:
            return
        if any(r.id == record.id for r in self.records):
            return

        index = 0
        while index < len(self.records) and self.records[index].created_at > record.created_at:
            index += 1
        self.records.insert(index, record)

        if self.surface.permission() == PermissionStatus.GRANTED:
            try:
                self.surface.show(record.title, record.body)
            except Exception as exc:
                logger.warning("OS notification failed: %s", exc)

    # ---- permission ----

    @property
    def permission(self) -> PermissionStatus:
        return self.surface.permission()

    async def request_permission(self) -> PermissionStatus:
        status = await self.surface.request_permission()
        logger.info("Notification permission is now %s", status.value)
        return status

    # ---- optimistic edits ----

    def mark_as_read(self, notification_id: str) -> bool:
        found = False
        for i, record in enumerate(self.records):
            if record.id == notification_id:
                self.records[i] = record.model_copy(update={"read": True})
                found = True
        if found and self.account_id is not None:
            self.scheduler.submit(
                ("notification", notification_id),
                "notification read state",
                lambda: self.repo.mark_read(notification_id),
            )
        return found

    def mark_all_as_read(self) -> None:
        self.records = [r.model_copy(update={"read": True}) for r in self.records]
        if self.account_id is not None:
            account_id = self.account_id
            self.scheduler.submit(
                ("notifications", account_id),
                "notification read state",
                lambda: self.repo.mark_all_read(account_id),
            )

    def clear_notification(self, notification_id: str) -> bool:
        before = len(self.records)
        self.records = [r for r in self.records if r.id != notification_id]
        if len(self.records) == before:
            return False
        if self.account_id is not None:
            self.scheduler.submit(
                ("notification", notification_id),
                "notification removal",
                lambda: self.repo.delete(notification_id),
            )
        return True

    def clear_all(self) -> None:
        self.records = []
        if self.account_id is not None:
            account_id = self.account_id
            self.scheduler.submit(
                ("notifications", account_id),
                "notification removal",
                lambda: self.repo.delete_all(account_id),
            )

    # ---- publishing ----

    async def publish(
        self,
        kind: NotificationKind,
        title: str,
        body: str,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """
        Insert a notification for the active account.

        It reaches `records` through the realtime feed, not directly.

        Raises:
            NoActiveAccount: in guest mode.
        """
        if self.account_id is None:
            raise NoActiveAccount("sign in to receive notifications")
        try:
            await self.repo.insert(self.account_id, kind, title, body, payload)
        except RemoteStoreError as exc:
            logger.warning("Publishing notification failed: %s", exc)
            self.advisories.add("notifications", f"Couldn't send notification '{title}'.")
            return False
        return True

    async def _publish_scheduled(self, item: ScheduledNotification) -> None:
        if self.account_id is None:
            return
        await self.publish(item.kind, item.title, item.body, item.payload)

    async def notify_order_update(self, order_id: str, status: str) -> bool:
        title, body = ORDER_STATUS_MESSAGES.get(
            status,
            ("Order Update", "Your order #{order_id} status has been updated to: {status}"),
        )
        return await self.publish(
            NotificationKind.ORDER_UPDATE,
            title,
            body.format(order_id=order_id, status=status),
            {"orderId": order_id, "status": status},
        )

    async def notify_promotion(
        self,
        title: str,
        discount: str,
        campaign_id: str | None = None,
    ) -> bool:
        return await self.publish(
            NotificationKind.PROMOTION,
            title,
            f"Get {discount} off on selected items. Limited time offer!",
            {"campaignId": campaign_id, "discount": discount},
        )

    # ---- scheduling ----

    def schedule(
        self,
        title: str,
        body: str,
        delay: timedelta,
        kind: NotificationKind = NotificationKind.PROMOTION,
        trigger: str = "promotion",
        payload: dict[str, Any] | None = None,
    ) -> ScheduledNotification:
        if self.account_id is None:
            raise NoActiveAccount("sign in to schedule notifications")
        return self.queue.schedule(trigger, kind, title, body, delay, payload)

    def schedule_cart_reminder(
        self,
        cart_value: float,
        item_count: int,
        delay: timedelta = timedelta(minutes=60),
    ) -> ScheduledNotification:
        """Replace any pending cart reminder with a fresh one."""
        self.queue.cancel_trigger(CART_REMINDER_TRIGGER)
        plural = "s" if item_count > 1 else ""
        return self.schedule(
            "Don't forget your items! 🛒",
            f"You have {item_count} item{plural} worth ${cart_value:.2f} waiting in your cart.",
            delay,
            kind=NotificationKind.CART_REMINDER,
            trigger=CART_REMINDER_TRIGGER,
            payload={"cartValue": cart_value, "itemCount": item_count},
        )

    def cancel_scheduled(self, notification_id: str) -> bool:
        return self.queue.cancel(notification_id)

    def scheduled(self) -> list[ScheduledNotification]:
        return self.queue.pending()
