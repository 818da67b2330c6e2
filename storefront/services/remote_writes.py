# storefront/services/remote_writes.py
import asyncio
import logging
from typing import Awaitable, Callable, Hashable

from storefront.core.errors import AdvisoryLog, RemoteStoreError

logger = logging.getLogger(__name__)

RemoteWrite = Callable[[], Awaitable[None]]


class RemoteWriteScheduler:
    """
    Runs best-effort remote mirror writes off the caller's path.

    Modes:
      - default: every write is its own task; writes to the same key may
        complete in any order (last completion wins remotely).
      - serialize_per_key: at most one in-flight write per key. Writes
        submitted while a key is busy are coalesced, so only the newest
        one runs after the current write finishes.

    A failed write never rolls anything back. It is logged and recorded
    as an advisory.
    """

    def __init__(self, advisories: AdvisoryLog, serialize_per_key: bool = False):
        self.advisories = advisories
        self.serialize_per_key = serialize_per_key
        self._tasks: set[asyncio.Task] = set()
        self._busy: set[Hashable] = set()
        self._pending: dict[Hashable, tuple[str, RemoteWrite]] = {}

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, key: Hashable, label: str, write: RemoteWrite) -> None:
        """
        Schedule `write` on the running event loop.

        Must be called from the event loop thread.
        """
        if self.serialize_per_key:
            if key in self._busy:
                self._pending[key] = (label, write)
                return
            self._busy.add(key)
        self._spawn(key, label, write)

    def _spawn(self, key: Hashable, label: str, write: RemoteWrite) -> None:
        task = asyncio.get_running_loop().create_task(self._run(key, label, write))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, key: Hashable, label: str, write: RemoteWrite) -> None:
        try:
            await write()
        except RemoteStoreError as exc:
            logger.warning("Remote mirror of %s failed: %s", label, exc)
            self.advisories.add(
                "sync",
                f"Couldn't sync {label}. Your change is kept on this device.",
            )
        finally:
            if self.serialize_per_key:
                self._next(key)

    def _next(self, key: Hashable) -> None:
        queued = self._pending.pop(key, None)
        if queued is None:
            self._busy.discard(key)
            return
        label, write = queued
        self._spawn(key, label, write)

    async def drain(self) -> None:
        """Wait until every submitted write (including coalesced ones) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
