"""
Shared pytest fixtures for the storefront sync tests.

Remote stores are replaced by in-memory fakes with the same async
methods as the Supabase-backed repositories; the device store is a real
SQLite file per test.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest

# Settings are read lazily by the auth dependency; give it test values.
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

from storefront.core.errors import AdvisoryLog, RemoteStoreError  # noqa: E402
from storefront.database import create_db_and_tables, create_local_engine  # noqa: E402
from storefront.models.cart import CartLine, ProductSnapshot  # noqa: E402
from storefront.models.notification import (  # noqa: E402
    NotificationKind,
    NotificationRecord,
    PermissionStatus,
)
from storefront.repositories.local_store import LocalEphemeralStore  # noqa: E402
from storefront.services.cart_sync import CartSyncEngine  # noqa: E402
from storefront.services.notification_inbox import NotificationInbox  # noqa: E402
from storefront.services.remote_writes import RemoteWriteScheduler  # noqa: E402
from storefront.services.session import StorefrontSession  # noqa: E402

ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_product(product_id: str = "prod-001", price: float = 10.0, stock: int | None = 100) -> ProductSnapshot:
    return ProductSnapshot(id=product_id, name=f"Product {product_id}", price=price, stock=stock)


def make_record(
    record_id: str,
    minutes: int = 0,
    account_id: str = ALICE,
    title: str = "Hello",
    read: bool = False,
) -> NotificationRecord:
    return NotificationRecord(
        id=record_id,
        account_id=account_id,
        kind=NotificationKind.GENERAL,
        title=title,
        body=f"body of {record_id}",
        read=read,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


# =============================================================================
# Fakes
# =============================================================================


class FakeCartRepository:
    """In-memory cart_items table keyed by (account, product, size, color)."""

    def __init__(self):
        self.rows: dict[tuple, CartLine] = {}
        self.calls: list[tuple] = []
        self.fail_list = False
        self.fail_insert_after: int | None = None
        self.fail_writes = False
        self.write_delays: list[float] = []
        self._inserts = 0

    def seed(self, account_id: str, line: CartLine) -> None:
        self.rows[(account_id, *line.key)] = line

    def lines(self, account_id: str) -> list[CartLine]:
        return [line for key, line in self.rows.items() if key[0] == account_id]

    async def _write_gate(self) -> None:
        if self.write_delays:
            await asyncio.sleep(self.write_delays.pop(0))
        if self.fail_writes:
            raise RemoteStoreError("write", "network down")

    async def list_for_account(self, account_id: str) -> list[CartLine]:
        self.calls.append(("list", account_id))
        if self.fail_list:
            raise RemoteStoreError("fetch cart", "network down")
        return [line.model_copy() for line in self.lines(account_id)]

    async def insert_line(self, account_id: str, line: CartLine) -> None:
        self.calls.append(("insert", account_id, line.key))
        if self.fail_insert_after is not None and self._inserts >= self.fail_insert_after:
            raise RemoteStoreError("insert cart line", "network down")
        self._inserts += 1
        key = (account_id, *line.key)
        if key in self.rows:
            raise RemoteStoreError("insert cart line", "duplicate key")
        self.rows[key] = line.model_copy()

    async def upsert_line(self, account_id: str, line: CartLine) -> None:
        self.calls.append(("upsert", account_id, line.key, line.quantity))
        await self._write_gate()
        self.rows[(account_id, *line.key)] = line.model_copy()

    async def delete_line(self, account_id, product_id, size, color) -> None:
        self.calls.append(("delete", account_id, (product_id, size, color)))
        await self._write_gate()
        self.rows.pop((account_id, product_id, size, color), None)

    async def clear_account(self, account_id: str) -> None:
        self.calls.append(("clear", account_id))
        await self._write_gate()
        for key in [k for k in self.rows if k[0] == account_id]:
            del self.rows[key]


class FakeSubscription:
    def __init__(self, account_id: str):
        self.account_id = account_id
        self.release_calls = 0
        self._released = False

    @property
    def active(self) -> bool:
        return not self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.release_calls += 1


class FakeNotificationRepository:
    def __init__(self):
        self.rows: list[NotificationRecord] = []
        self.calls: list[tuple] = []
        self.subscriptions: list[FakeSubscription] = []
        self.callback = None
        self.fail_list = False
        self.fail_subscribe = False
        self.fail_writes = False

    def emit(self, record: NotificationRecord) -> None:
        """Simulate a realtime INSERT event."""
        self.callback(record)

    async def list_for_account(self, account_id: str) -> list[NotificationRecord]:
        self.calls.append(("list", account_id))
        if self.fail_list:
            raise RemoteStoreError("fetch notifications", "network down")
        # Deliberately oldest-first: the inbox must sort.
        return sorted(
            (r for r in self.rows if r.account_id == account_id),
            key=lambda r: r.created_at,
        )

    async def insert(self, account_id, kind, title, body, payload=None) -> None:
        self.calls.append(("insert", account_id, kind, title, body, payload))
        if self.fail_writes:
            raise RemoteStoreError("insert notification", "network down")

    async def mark_read(self, notification_id: str) -> None:
        self.calls.append(("mark_read", notification_id))
        if self.fail_writes:
            raise RemoteStoreError("mark notification read", "network down")

    async def mark_all_read(self, account_id: str) -> None:
        self.calls.append(("mark_all_read", account_id))

    async def delete(self, notification_id: str) -> None:
        self.calls.append(("delete", notification_id))

    async def delete_all(self, account_id: str) -> None:
        self.calls.append(("delete_all", account_id))

    async def subscribe_inserts(self, account_id, callback) -> FakeSubscription:
        self.calls.append(("subscribe", account_id))
        if self.fail_subscribe:
            raise RemoteStoreError("subscribe notifications", "socket closed")
        self.callback = callback
        subscription = FakeSubscription(account_id)
        self.subscriptions.append(subscription)
        return subscription


class FakeSurface:
    def __init__(self, status: PermissionStatus = PermissionStatus.GRANTED):
        self.status = status
        self.shown: list[tuple[str, str]] = []

    def permission(self) -> PermissionStatus:
        return self.status

    async def request_permission(self) -> PermissionStatus:
        if self.status != PermissionStatus.UNSUPPORTED:
            self.status = PermissionStatus.GRANTED
        return self.status

    def show(self, title: str, body: str) -> None:
        self.shown.append((title, body))


class FakeProductRepository:
    def __init__(self, *products: ProductSnapshot):
        self.products = {p.id: p for p in products}

    async def get_by_id(self, product_id: str) -> ProductSnapshot | None:
        return self.products.get(product_id)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def local_store(tmp_path) -> LocalEphemeralStore:
    """Fresh SQLite-backed device store for each test."""
    engine = create_local_engine(f"sqlite:///{tmp_path / 'local.db'}")
    create_db_and_tables(engine)
    return LocalEphemeralStore(engine)


@pytest.fixture
def advisories() -> AdvisoryLog:
    return AdvisoryLog(limit=20)


@pytest.fixture
def scheduler(advisories: AdvisoryLog) -> RemoteWriteScheduler:
    return RemoteWriteScheduler(advisories)


@pytest.fixture
def cart_repo() -> FakeCartRepository:
    return FakeCartRepository()


@pytest.fixture
def engine(local_store, cart_repo, scheduler, advisories) -> CartSyncEngine:
    cart = CartSyncEngine(local_store, cart_repo, scheduler, advisories)
    cart.load()
    return cart


@pytest.fixture
def notification_repo() -> FakeNotificationRepository:
    return FakeNotificationRepository()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def inbox(notification_repo, scheduler, advisories, surface) -> NotificationInbox:
    return NotificationInbox(notification_repo, scheduler, advisories, surface=surface)


@pytest.fixture
def storefront(engine, inbox, scheduler, advisories) -> StorefrontSession:
    return StorefrontSession(engine, inbox, scheduler, advisories)
