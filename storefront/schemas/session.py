# storefront/schemas/session.py
from sqlmodel import SQLModel

from storefront.models.notification import PermissionStatus


class SessionRead(SQLModel):
    """
    Current account state of this device.

    remote_synced is False while signed in if the cart merge did not
    complete; the cart is then kept on the device only.
    """

    account_id: str | None
    is_authenticated: bool
    remote_synced: bool
    live_notifications: bool
    permission: PermissionStatus
