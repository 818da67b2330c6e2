# storefront/core/errors.py
from collections import deque
from datetime import datetime, timezone
from typing import Iterator

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, Field, ValidationError

# Errors raised by the Supabase client that mean "the remote call failed".
REMOTE_ERRORS: tuple[type[Exception], ...] = (APIError, httpx.HTTPError)

# Errors raised while mapping a remote row that does not fit our models.
ROW_ERRORS: tuple[type[Exception], ...] = (ValidationError, KeyError, TypeError, ValueError)


class RemoteStoreError(Exception):
    """
    A remote table or realtime call failed.

    Repositories raise this instead of leaking PostgREST/httpx exceptions,
    so the sync engine and inbox only have one type to catch.
    """

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail

    @classmethod
    def wrap(cls, operation: str, exc: Exception) -> "RemoteStoreError":
        if isinstance(exc, APIError):
            return cls(operation, exc.message or str(exc))
        return cls(operation, str(exc))


class Advisory(BaseModel):
    """
    Non-blocking, user-facing notice about a degraded sync.
    """

    source: str
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdvisoryLog:
    """Bounded, newest-last list of advisories shared by the engine and inbox."""

    def __init__(self, limit: int = 50):
        self._items: deque[Advisory] = deque(maxlen=limit)

    def add(self, source: str, message: str) -> Advisory:
        advisory = Advisory(source=source, message=message)
        self._items.append(advisory)
        return advisory

    def drain(self) -> list[Advisory]:
        items = list(self._items)
        self._items.clear()
        return items

    def __iter__(self) -> Iterator[Advisory]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


class NoActiveAccount(Exception):
    """An operation that needs a signed-in account ran in guest mode."""
