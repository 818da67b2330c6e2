"""
Tests for the remote write scheduler: fire-and-forget by default,
one in-flight write per key when serialization is on.
"""

import asyncio

from storefront.core.errors import AdvisoryLog, RemoteStoreError
from storefront.services.remote_writes import RemoteWriteScheduler


def recorder(log: list, name: str, delay: float = 0.0, fail: bool = False):
    async def write():
        log.append(("start", name))
        await asyncio.sleep(delay)
        if fail:
            raise RemoteStoreError("write", "boom")
        log.append(("done", name))

    return write


class TestConcurrentMode:
    async def test_writes_may_complete_out_of_order(self):
        log: list = []
        scheduler = RemoteWriteScheduler(AdvisoryLog())

        scheduler.submit("k", "first", recorder(log, "first", delay=0.05))
        scheduler.submit("k", "second", recorder(log, "second", delay=0.0))
        await scheduler.drain()

        done = [name for event, name in log if event == "done"]
        assert done == ["second", "first"]

    async def test_failure_becomes_advisory(self):
        advisories = AdvisoryLog()
        scheduler = RemoteWriteScheduler(advisories)

        scheduler.submit("k", "cart item P1", recorder([], "x", fail=True))
        await scheduler.drain()

        assert scheduler.in_flight == 0
        [advisory] = advisories.drain()
        assert "cart item P1" in advisory.message


class TestSerializedMode:
    async def test_one_in_flight_per_key_and_coalescing(self):
        log: list = []
        scheduler = RemoteWriteScheduler(AdvisoryLog(), serialize_per_key=True)

        scheduler.submit("k", "w1", recorder(log, "w1", delay=0.02))
        scheduler.submit("k", "w2", recorder(log, "w2"))
        scheduler.submit("k", "w3", recorder(log, "w3"))
        await scheduler.drain()

        assert log == [("start", "w1"), ("done", "w1"), ("start", "w3"), ("done", "w3")]

    async def test_other_keys_are_not_blocked(self):
        log: list = []
        scheduler = RemoteWriteScheduler(AdvisoryLog(), serialize_per_key=True)

        scheduler.submit("a", "a1", recorder(log, "a1", delay=0.05))
        scheduler.submit("b", "b1", recorder(log, "b1"))
        await scheduler.drain()

        done = [name for event, name in log if event == "done"]
        assert done == ["b1", "a1"]

    async def test_failed_write_releases_key(self):
        log: list = []
        scheduler = RemoteWriteScheduler(AdvisoryLog(), serialize_per_key=True)

        scheduler.submit("k", "w1", recorder(log, "w1", fail=True))
        await scheduler.drain()
        scheduler.submit("k", "w2", recorder(log, "w2"))
        await scheduler.drain()

        assert ("done", "w2") in log
