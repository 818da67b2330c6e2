# storefront/models/notification.py
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import field_validator
from sqlmodel import SQLModel, Field


class NotificationKind(str, Enum):
    ORDER_UPDATE = "order_update"
    ORDER_PLACED = "order_placed"
    CART_REMINDER = "cart_abandonment"
    PROMOTION = "promotion"
    GENERAL = "general"


class PermissionStatus(str, Enum):
    """Whether OS-level notifications may be shown on this device."""

    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class NotificationRecord(SQLModel):
    """
    One inbox entry owned by a single account.

    Only `read` changes after creation.
    """

    id: str
    account_id: str | None = None
    kind: NotificationKind = NotificationKind.GENERAL
    title: str
    body: str
    payload: dict[str, Any] | None = None
    read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("kind", mode="before")
    @classmethod
    def coerce_kind(cls, v: Any) -> Any:
        # Rows written by other clients may carry kinds we do not know.
        if isinstance(v, NotificationKind):
            return v
        try:
            return NotificationKind(v)
        except ValueError:
            return NotificationKind.GENERAL


class ScheduledNotification(SQLModel):
    """
    A notification waiting to be published after a delay.
    """

    id: str
    trigger: str
    kind: NotificationKind
    title: str
    body: str
    scheduled_for: datetime
    payload: dict[str, Any] | None = None
