"""
Reel Event Bus — pub/sub for lifecycle events.

Subscribers register for an exact type ("broadcast:complete"), a
category wildcard ("broadcast:*") or everything ("*"). Handlers run
concurrently; a failing handler is logged and never affects the emitter.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from typing import Awaitable, Callable

from reel.core.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """
    Usage:
        bus = EventBus()
        bus.on("broadcast:*", stats.handle)
        bus.on("*", event_logger.handle)

        await bus.emit(Event(type="broadcast:start", data={...}))
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._pending: set[asyncio.Task] = set()

    def on(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe to an event type or wildcard pattern."""
        self._subscribers.setdefault(pattern, []).append(handler)

    def off(self, pattern: str, handler: EventHandler) -> None:
        """Unsubscribe a handler previously registered with on()."""
        handlers = [h for h in self._subscribers.get(pattern, []) if h is not handler]
        if handlers:
            self._subscribers[pattern] = handlers
        else:
            self._subscribers.pop(pattern, None)

    async def emit(self, event: Event) -> Event:
        """Deliver the event to every matching subscriber and wait for them."""
        handlers = self._find_handlers(event.type)
        if not handlers:
            return event

        results = await asyncio.gather(
            *(handler(event) for handler in handlers),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    f"Subscriber error for {event.type}: {result}",
                    exc_info=result,
                )
        return event

    def emit_nowait(self, event: Event) -> None:
        """Schedule emission without waiting. No-op outside an event loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No event loop for nowait emit: {event.type}")
            return
        task = loop.create_task(self.emit(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _find_handlers(self, event_type: str) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for pattern, subs in self._subscribers.items():
            if pattern == event_type or pattern == "*":
                handlers.extend(subs)
            elif "*" in pattern and fnmatch.fnmatch(event_type, pattern):
                handlers.extend(subs)
        return handlers

    @property
    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())
