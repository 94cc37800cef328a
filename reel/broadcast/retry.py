"""
Broadcast retry wrapper.

Only a PipelineError (the recipient set could not be read) is retried.
Per-recipient failures are handled inside the delivery loop and never
reach this level, so a retry can never double-send to someone who
already received the notification.

Attempt n (1-based) waits n * backoff_unit before running; the first
attempt runs immediately. max_retries=3 means four attempts in total.
"""

from __future__ import annotations

import asyncio
import logging

from reel.broadcast.delivery import DeliveryLoop, Sleeper
from reel.core.bus import EventBus
from reel.core.errors import BroadcastFailedError, PipelineError
from reel.core.events import Event, EventType
from reel.core.types import DeliveryReport, NotificationPayload

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BACKOFF_UNIT = 1.0  # seconds


async def deliver_with_retry(
    loop: DeliveryLoop,
    payload: NotificationPayload,
    max_retries: int = MAX_RETRIES,
    backoff_unit: float = BACKOFF_UNIT,
    bus: EventBus | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> DeliveryReport:
    """Run the delivery loop, retrying pipeline failures with linear backoff."""
    attempts = max(0, max_retries) + 1
    last_error: PipelineError | None = None

    for attempt in range(attempts):
        if attempt > 0:
            delay = attempt * backoff_unit
            logger.warning(
                f"Retrying broadcast for {payload.content_id} "
                f"(attempt {attempt + 1}/{attempts}) in {delay:.1f}s"
            )
            if bus is not None:
                await bus.emit(
                    Event(
                        type=EventType.BROADCAST_RETRY,
                        source="retry",
                        data={
                            "content_id": payload.content_id,
                            "attempt": attempt + 1,
                            "delay": delay,
                            "error": str(last_error),
                        },
                    )
                )
            await sleep(delay)

        try:
            return await loop.deliver(payload)
        except PipelineError as e:
            last_error = e
            logger.warning(f"Broadcast attempt {attempt + 1} failed for {payload.content_id}: {e}")

    raise BroadcastFailedError(
        f"Broadcast failed after {attempts} attempts: {last_error}",
        attempts=attempts,
        last_error=last_error,
        details={"content_id": payload.content_id},
    )
