"""
In-memory asyncio worker pool for forwarding webhook events downstream.

Design goals:
- No external dependencies (no Redis, no Celery).
- ``submit()`` never blocks and never raises; the webhook path only enqueues.
- A bounded queue caps memory; when full, events are dropped with a warning.
- Delivery failures are logged and counted, never propagated.

Usage::

    forwarder = EventForwarder(downstream.deliver, workers=4, queue_size=1000)

    forwarder.submit(event)       # from any coroutine on the loop
    forwarder.stats()             # {"submitted": 1, "delivered": 0, ...}
    await forwarder.shutdown()    # drain and stop at application exit
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from core.domain.events import WebhookEvent

logger = logging.getLogger(__name__)

DeliverFn = Callable[[WebhookEvent], Awaitable[None]]


class EventForwarder:
    """Bounded queue drained by a fixed number of asyncio workers."""

    def __init__(self, deliver: DeliverFn, workers: int = 4, queue_size: int = 1000) -> None:
        self._deliver = deliver
        self._worker_count = max(1, workers)
        self._queue_size = max(1, queue_size)
        self._queue: asyncio.Queue[WebhookEvent] | None = None
        self._workers: list[asyncio.Task] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._counters: dict[str, int] = {
            "submitted": 0,
            "delivered": 0,
            "failed": 0,
            "dropped": 0,
        }

    # ── Public API ────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return bool(self._workers) and not all(w.done() for w in self._workers)

    def start(self) -> None:
        """Start workers on the running loop. Idempotent."""
        loop = asyncio.get_running_loop()
        if self._loop is loop and self.running:
            return
        if self._loop is not None and self._loop is not loop:
            logger.debug("event_forwarder: event loop changed, recreating queue")
        self._loop = loop
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"event-forwarder-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("event_forwarder: started %d workers", self._worker_count)

    def submit(self, event: WebhookEvent) -> bool:
        """
        Enqueue *event* for delivery.

        Returns True if queued, False if dropped. Must be called from a
        coroutine running on the event loop.
        """
        try:
            self.start()
            assert self._queue is not None
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._counters["dropped"] += 1
            logger.warning(
                "event_forwarder: queue full, dropping event",
                extra={"event_type": event.event_tag, "account_id": event.account_id},
            )
            return False
        except RuntimeError as exc:
            self._counters["dropped"] += 1
            logger.error("event_forwarder: cannot enqueue outside event loop: %s", exc)
            return False

        self._counters["submitted"] += 1
        return True

    async def join(self) -> None:
        """Wait until every queued event has been processed."""
        if self._queue is not None and self.running:
            await self._queue.join()

    async def shutdown(self, drain: bool = True, timeout: float = 10.0) -> None:
        """Optionally drain the queue, then cancel workers."""
        if not self._workers:
            return
        if drain:
            try:
                await asyncio.wait_for(self.join(), timeout=timeout)
            except TimeoutError:
                logger.warning(
                    "event_forwarder: shutdown timed out with %d events queued",
                    self._queue.qsize() if self._queue else 0,
                )
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("event_forwarder: stopped")

    def stats(self) -> dict[str, Any]:
        """Return counters (useful for health/monitoring endpoints)."""
        return {
            **self._counters,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            "workers": len(self._workers),
        }

    # ── Internal helpers ──────────────────────────────────────────────────────

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                await self._deliver(event)
                self._counters["delivered"] += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._counters["failed"] += 1
                logger.error(
                    "event_forwarder: delivery failed: %s",
                    exc,
                    extra={"event_type": event.event_tag, "account_id": event.account_id},
                )
            finally:
                queue.task_done()
