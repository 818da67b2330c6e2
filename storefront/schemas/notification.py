# storefront/schemas/notification.py
from sqlmodel import SQLModel, Field

from storefront.core.errors import Advisory
from storefront.models.notification import (
    NotificationKind,
    NotificationRecord,
    PermissionStatus,
    ScheduledNotification,
)


class NotificationList(SQLModel):
    """
    Inbox response: newest-first records plus counters.
    """

    items: list[NotificationRecord]
    unread_count: int
    permission: PermissionStatus
    live: bool
    advisories: list[Advisory] = []


class PermissionRead(SQLModel):
    status: PermissionStatus


class ScheduleCreate(SQLModel):
    """
    Payload for scheduling a notification after a delay.
    """

    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    delay_seconds: float = Field(gt=0)
    kind: NotificationKind = NotificationKind.PROMOTION
    trigger: str = "promotion"


class CartReminderCreate(SQLModel):
    delay_minutes: float = Field(default=60, gt=0)


class OrderUpdateCreate(SQLModel):
    order_id: str
    status: str


class PromotionCreate(SQLModel):
    title: str = Field(min_length=1, max_length=200)
    discount: str
    campaign_id: str | None = None


class ScheduledList(SQLModel):
    items: list[ScheduledNotification]
