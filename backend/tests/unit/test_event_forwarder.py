"""
Unit tests for the in-memory EventForwarder.

Covers:
- Submitted events are delivered by background workers
- Delivery failures are counted and never propagated
- Bounded queue drops events when full
- stats() counters
- shutdown drains or discards the queue
"""

import asyncio

import pytest

from core.domain.events import MessageEvent, ReadEvent
from services.event_forwarder import EventForwarder


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event(n: int = 0) -> MessageEvent:
    return MessageEvent(account_id="acct", sender_id=f"user-{n}", text=f"msg {n}")


async def _failing(event) -> None:
    raise RuntimeError("downstream unavailable")


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


async def test_submitted_events_are_delivered(forwarder, delivered):
    for n in range(5):
        assert forwarder.submit(_event(n)) is True

    await forwarder.join()

    assert [e.text for e in delivered.events] == [f"msg {n}" for n in range(5)]
    stats = forwarder.stats()
    assert stats["submitted"] == 5
    assert stats["delivered"] == 5
    assert stats["failed"] == 0
    assert stats["queued"] == 0


async def test_submit_starts_workers_lazily(forwarder):
    assert forwarder.running is False

    forwarder.submit(_event())

    assert forwarder.running is True
    assert forwarder.stats()["workers"] == 2


async def test_start_is_idempotent(forwarder):
    forwarder.start()
    workers = list(forwarder._workers)

    forwarder.start()

    assert forwarder._workers == workers


async def test_delivery_failure_is_counted_not_raised():
    fwd = EventForwarder(_failing, workers=1, queue_size=10)
    try:
        fwd.submit(ReadEvent(account_id="acct", message_id="m1"))
        fwd.submit(ReadEvent(account_id="acct", message_id="m2"))
        await fwd.join()

        stats = fwd.stats()
        assert stats["failed"] == 2
        assert stats["delivered"] == 0
        assert fwd.running is True
    finally:
        await fwd.shutdown(drain=False)


async def test_worker_survives_failure_and_continues():
    seen = []

    async def flaky(event):
        if event.text == "msg 0":
            raise RuntimeError("first one fails")
        seen.append(event.text)

    fwd = EventForwarder(flaky, workers=1, queue_size=10)
    try:
        fwd.submit(_event(0))
        fwd.submit(_event(1))
        await fwd.join()
    finally:
        await fwd.shutdown(drain=False)

    assert seen == ["msg 1"]


# ---------------------------------------------------------------------------
# Backpressure
# ---------------------------------------------------------------------------


async def test_queue_full_drops_event(delivered):
    fwd = EventForwarder(delivered, workers=1, queue_size=2)
    try:
        # No awaits between submits, so workers cannot drain in between
        results = [fwd.submit(_event(n)) for n in range(4)]

        assert results == [True, True, False, False]
        assert fwd.stats()["dropped"] == 2

        await fwd.join()
        assert len(delivered.events) == 2
    finally:
        await fwd.shutdown(drain=False)


def test_submit_outside_event_loop_is_dropped(delivered):
    fwd = EventForwarder(delivered)

    assert fwd.submit(_event()) is False
    assert fwd.stats()["dropped"] == 1


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------


async def test_shutdown_drains_queue(delivered):
    fwd = EventForwarder(delivered, workers=1, queue_size=10)
    for n in range(3):
        fwd.submit(_event(n))

    await fwd.shutdown(drain=True, timeout=1.0)

    assert len(delivered.events) == 3
    assert fwd.running is False
    assert fwd.stats()["workers"] == 0


async def test_shutdown_times_out_on_slow_delivery():
    async def slow(event):
        await asyncio.sleep(5)

    fwd = EventForwarder(slow, workers=1, queue_size=10)
    fwd.submit(_event())

    await fwd.shutdown(drain=True, timeout=0.05)

    assert fwd.running is False


async def test_shutdown_without_start_is_noop(delivered):
    fwd = EventForwarder(delivered)
    await fwd.shutdown()
    assert fwd.stats()["workers"] == 0


@pytest.mark.parametrize("workers,queue_size", [(0, 0), (-1, -5)])
async def test_sizes_are_clamped(delivered, workers, queue_size):
    fwd = EventForwarder(delivered, workers=workers, queue_size=queue_size)
    try:
        assert fwd.submit(_event()) is True
        await fwd.join()
        assert fwd.stats()["workers"] == 1
        assert len(delivered.events) == 1
    finally:
        await fwd.shutdown(drain=False)
