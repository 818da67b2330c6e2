# storefront/routers/notifications.py
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.deps import get_storefront
from storefront.core.errors import NoActiveAccount
from storefront.schemas.notification import (
    CartReminderCreate,
    NotificationList,
    OrderUpdateCreate,
    PermissionRead,
    PromotionCreate,
    ScheduleCreate,
    ScheduledList,
)
from storefront.models.notification import ScheduledNotification
from storefront.services.session import StorefrontSession

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def build_notification_list(storefront: StorefrontSession) -> NotificationList:
    inbox = storefront.inbox
    return NotificationList(
        items=inbox.records,
        unread_count=inbox.unread_count,
        permission=inbox.permission,
        live=inbox.subscribed,
        advisories=storefront.advisories.drain(),
    )


def require_account(storefront: StorefrontSession = Depends(get_storefront)) -> StorefrontSession:
    """
    Enforce a signed-in account for routes that publish or schedule.

    Raises:
        HTTPException(401): in guest mode.
    """
    if storefront.account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in to use notifications",
        )
    return storefront


# -------- Inbox --------


@router.get("", response_model=NotificationList)
async def list_notifications(storefront: StorefrontSession = Depends(get_storefront)):
    """Newest-first notifications of the active account (empty for guests)."""
    return build_notification_list(storefront)


@router.post("/read-all", response_model=NotificationList)
async def mark_all_read(storefront: StorefrontSession = Depends(get_storefront)):
    storefront.inbox.mark_all_as_read()
    return build_notification_list(storefront)


@router.post("/{notification_id}/read", response_model=NotificationList)
async def mark_read(
    notification_id: str,
    storefront: StorefrontSession = Depends(get_storefront),
):
    if not storefront.inbox.mark_as_read(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return build_notification_list(storefront)


@router.delete("/{notification_id}", response_model=NotificationList)
async def clear_notification(
    notification_id: str,
    storefront: StorefrontSession = Depends(get_storefront),
):
    if not storefront.inbox.clear_notification(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return build_notification_list(storefront)


@router.delete("", response_model=NotificationList)
async def clear_all(storefront: StorefrontSession = Depends(get_storefront)):
    storefront.inbox.clear_all()
    return build_notification_list(storefront)


# -------- OS permission --------


@router.get("/permission", response_model=PermissionRead)
async def read_permission(storefront: StorefrontSession = Depends(get_storefront)):
    return PermissionRead(status=storefront.inbox.permission)


@router.post("/permission", response_model=PermissionRead)
async def request_permission(storefront: StorefrontSession = Depends(get_storefront)):
    """Ask the host for OS-level notification permission."""
    return PermissionRead(status=await storefront.inbox.request_permission())


# -------- Publishing --------


@router.post("/order-update", status_code=status.HTTP_202_ACCEPTED)
async def send_order_update(
    payload: OrderUpdateCreate,
    storefront: StorefrontSession = Depends(require_account),
):
    """
    Publish an order status notification.

    It shows up in the inbox once the realtime INSERT event arrives.
    """
    sent = await storefront.inbox.notify_order_update(payload.order_id, payload.status)
    return {"sent": sent}


@router.post("/promotion", status_code=status.HTTP_202_ACCEPTED)
async def send_promotion(
    payload: PromotionCreate,
    storefront: StorefrontSession = Depends(require_account),
):
    sent = await storefront.inbox.notify_promotion(
        payload.title, payload.discount, payload.campaign_id
    )
    return {"sent": sent}


# -------- Scheduled --------


@router.get("/scheduled", response_model=ScheduledList)
async def list_scheduled(storefront: StorefrontSession = Depends(get_storefront)):
    return ScheduledList(items=storefront.inbox.scheduled())


@router.post("/scheduled", response_model=ScheduledNotification, status_code=status.HTTP_201_CREATED)
async def schedule_notification(
    payload: ScheduleCreate,
    storefront: StorefrontSession = Depends(require_account),
):
    try:
        return storefront.inbox.schedule(
            payload.title,
            payload.body,
            timedelta(seconds=payload.delay_seconds),
            kind=payload.kind,
            trigger=payload.trigger,
        )
    except NoActiveAccount as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


@router.post(
    "/scheduled/cart-reminder",
    response_model=ScheduledNotification,
    status_code=status.HTTP_201_CREATED,
)
async def schedule_cart_reminder(
    payload: CartReminderCreate,
    storefront: StorefrontSession = Depends(require_account),
):
    """
    Schedule a reminder for the current cart, replacing any pending one.

    Raises 400 when the cart is empty.
    """
    cart = storefront.cart
    if not cart.cart_lines:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cart is empty",
        )
    return storefront.inbox.schedule_cart_reminder(
        cart.cart_total,
        cart.cart_count,
        delay=timedelta(minutes=payload.delay_minutes),
    )


@router.delete("/scheduled/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_scheduled(
    notification_id: str,
    storefront: StorefrontSession = Depends(get_storefront),
):
    if not storefront.inbox.cancel_scheduled(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Scheduled notification not found",
        )
