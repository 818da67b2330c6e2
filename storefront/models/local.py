# storefront/models/local.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class LocalEntry(SQLModel, table=True):
    """
    Device-local key/value row.

    `value` holds a JSON array of serialized CartLine / SavedLine objects.
    """

    __tablename__ = "local_entries"

    key: str = Field(primary_key=True, max_length=100)

    value: str = Field(
        default="[]",
        description="JSON-encoded sequence",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
