# storefront/repositories/notification_repo.py
import logging
from typing import Any, Callable

from supabase import AsyncClient

from storefront.core.errors import REMOTE_ERRORS, ROW_ERRORS, RemoteStoreError
from storefront.models.notification import NotificationKind, NotificationRecord

logger = logging.getLogger(__name__)

InsertCallback = Callable[[NotificationRecord], None]


def record_from_row(row: dict[str, Any]) -> NotificationRecord:
    return NotificationRecord(
        id=str(row["id"]),
        account_id=row.get("user_id"),
        kind=row.get("type") or NotificationKind.GENERAL,
        title=row.get("title") or "",
        body=row.get("body") or "",
        payload=row.get("data"),
        read=bool(row.get("read")),
        created_at=row["created_at"],
    )


def row_from_event(event: dict[str, Any]) -> dict[str, Any] | None:
    """
    Pull the inserted row out of a postgres_changes payload.

    realtime-py nests it under data.record; older servers send `new`.
    """
    data = event.get("data") or {}
    return data.get("record") or event.get("new") or event.get("record")


class RealtimeSubscription:
    """
    Handle for one realtime channel.

    Released exactly once: later `release()` calls are no-ops.
    """

    def __init__(self, client: AsyncClient, channel: Any, account_id: str):
        self.client = client
        self.channel = channel
        self.account_id = account_id
        self._released = False

    @property
    def active(self) -> bool:
        return not self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            await self.client.remove_channel(self.channel)
        except Exception as exc:
            # Channel is being torn down anyway.
            logger.warning("Realtime unsubscribe for %s failed: %s", self.account_id, exc)


class NotificationRepository:
    """
    Remote Notification Store: the per-account `notifications` table
    plus its realtime INSERT feed.
    """

    def __init__(self, client: AsyncClient, table: str = "notifications"):
        self.client = client
        self.table = table

    async def list_for_account(self, account_id: str) -> list[NotificationRecord]:
        try:
            res = await (
                self.client.table(self.table)
                .select("*")
                .eq("user_id", account_id)
                .order("created_at", desc=True)
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("fetch notifications", exc) from exc

        records = []
        for row in res.data or []:
            try:
                records.append(record_from_row(row))
            except ROW_ERRORS as exc:
                logger.warning("Skipping malformed notification row %r: %s", row.get("id"), exc)
        return records

    async def insert(
        self,
        account_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        row = {
            "user_id": account_id,
            "type": kind.value,
            "title": title,
            "body": body,
            "data": payload,
            "read": False,
        }
        try:
            await self.client.table(self.table).insert(row).execute()
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("insert notification", exc) from exc

    async def mark_read(self, notification_id: str) -> None:
        try:
            await (
                self.client.table(self.table)
                .update({"read": True})
                .eq("id", notification_id)
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("mark notification read", exc) from exc

    async def mark_all_read(self, account_id: str) -> None:
        try:
            await (
                self.client.table(self.table)
                .update({"read": True})
                .eq("user_id", account_id)
                .execute()
            )
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("mark all notifications read", exc) from exc

    async def delete(self, notification_id: str) -> None:
        try:
            await self.client.table(self.table).delete().eq("id", notification_id).execute()
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("delete notification", exc) from exc

    async def delete_all(self, account_id: str) -> None:
        try:
            await self.client.table(self.table).delete().eq("user_id", account_id).execute()
        except REMOTE_ERRORS as exc:
            raise RemoteStoreError.wrap("delete all notifications", exc) from exc

    async def subscribe_inserts(
        self,
        account_id: str,
        callback: InsertCallback,
    ) -> RealtimeSubscription:
        """
        Open a realtime channel for INSERTs on this account's rows.

        `callback` runs on the event loop for every decoded record.
        Undecodable events are logged and dropped.
        """

        def on_insert(event: dict[str, Any]) -> None:
            row = row_from_event(event)
            if row is None:
                logger.warning("Realtime event without a record: %r", event)
                return
            try:
                record = record_from_row(row)
            except ROW_ERRORS as exc:
                logger.warning("Dropping malformed realtime record: %s", exc)
                return
            callback(record)

        channel = self.client.channel(f"notifications:{account_id}")
        channel.on_postgres_changes(
            "INSERT",
            schema="public",
            table=self.table,
            filter=f"user_id=eq.{account_id}",
            callback=on_insert,
        )
        try:
            await channel.subscribe()
        except Exception as exc:
            await self._discard_channel(channel, account_id)
            raise RemoteStoreError("subscribe notifications", str(exc)) from exc
        return RealtimeSubscription(self.client, channel, account_id)

    async def _discard_channel(self, channel: Any, account_id: str) -> None:
        try:
            await self.client.remove_channel(channel)
        except Exception as exc:
            logger.warning("Removing failed channel for %s failed: %s", account_id, exc)
