"""
BroadcastDispatcher — the hand-off between ingestion and delivery.

The webhook handler must answer quickly, and a broadcast to many
recipients at 35ms per send can take minutes. submit() enqueues the
payload and returns immediately; background workers drain the queue
and run each broadcast through deliver_with_retry().

The queue is bounded. When it is full the payload is dropped and
logged; the content id is already in the ledger, so a dropped
broadcast is never retried by a later duplicate webhook.
"""

from __future__ import annotations

import asyncio
import logging

from reel.broadcast.delivery import DeliveryLoop
from reel.broadcast.retry import BACKOFF_UNIT, MAX_RETRIES, deliver_with_retry
from reel.core.bus import EventBus
from reel.core.errors import BroadcastFailedError
from reel.core.events import Event, EventType
from reel.core.types import NotificationPayload

logger = logging.getLogger(__name__)

QUEUE_SIZE = 100


class BroadcastDispatcher:
    """
    Usage:
        dispatcher = BroadcastDispatcher(delivery_loop, bus=bus)
        await dispatcher.start()
        dispatcher.submit(payload)      # returns at once
        ...
        await dispatcher.stop(timeout=10)
    """

    def __init__(
        self,
        delivery: DeliveryLoop,
        max_retries: int = MAX_RETRIES,
        backoff_unit: float = BACKOFF_UNIT,
        queue_size: int = QUEUE_SIZE,
        workers: int = 1,
        bus: EventBus | None = None,
    ) -> None:
        self._delivery = delivery
        self._max_retries = max_retries
        self._backoff_unit = backoff_unit
        self._queue: asyncio.Queue[NotificationPayload] = asyncio.Queue(maxsize=queue_size)
        self._worker_count = max(1, workers)
        self._workers: list[asyncio.Task] = []
        self._bus = bus
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Payloads waiting for a worker."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the background workers."""
        if self._running:
            return
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker(), name=f"broadcast-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(f"BroadcastDispatcher started ({self._worker_count} worker(s))")

    async def stop(self, timeout: float = 0.0) -> None:
        """
        Stop the workers.

        With a timeout, queued broadcasts get up to that many seconds
        to finish first. Whatever is still queued afterwards is lost.
        """
        if timeout > 0 and self._running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Dispatcher stop timed out, abandoning {self._queue.qsize()} queued broadcast(s)"
                )

        self._running = False
        for task in self._workers:
            if not task.done():
                task.cancel()
        for task in self._workers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._workers = []
        logger.info("BroadcastDispatcher stopped")

    def submit(self, payload: NotificationPayload) -> bool:
        """Queue a broadcast without waiting for it. False when dropped."""
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.error(
                f"Broadcast queue full ({self._queue.maxsize}), "
                f"dropping notification for {payload.content_id}"
            )
            self._emit_nowait(
                EventType.BROADCAST_DROPPED,
                {"content_id": payload.content_id, "title": payload.title},
            )
            return False

        logger.debug(f"Queued broadcast for {payload.content_id} (pending={self._queue.qsize()})")
        self._emit_nowait(
            EventType.BROADCAST_QUEUED,
            {"content_id": payload.content_id, "pending": self._queue.qsize()},
        )
        return True

    async def join(self) -> None:
        """Wait until every queued broadcast has been processed."""
        await self._queue.join()

    # ── Internal loop ─────────────────────────────────────────────

    async def _worker(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self._run(payload)
            finally:
                self._queue.task_done()

    async def _run(self, payload: NotificationPayload) -> None:
        try:
            await deliver_with_retry(
                self._delivery,
                payload,
                max_retries=self._max_retries,
                backoff_unit=self._backoff_unit,
                bus=self._bus,
            )
        except BroadcastFailedError as e:
            logger.error(f"Giving up on broadcast for {payload.content_id}: {e.message}")
            if self._bus is not None:
                await self._bus.emit(
                    Event(
                        type=EventType.BROADCAST_FAILED,
                        source="dispatcher",
                        data={
                            "content_id": payload.content_id,
                            "attempts": e.attempts,
                            "error": str(e.last_error),
                        },
                    )
                )
        except Exception as e:
            logger.exception(f"Unexpected broadcast error for {payload.content_id}: {e}")

    def _emit_nowait(self, event_type: str, data: dict) -> None:
        if self._bus is not None:
            self._bus.emit_nowait(Event(type=event_type, data=data, source="dispatcher"))
