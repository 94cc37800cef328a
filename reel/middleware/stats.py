"""
Broadcast statistics — running counters fed by bus events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from reel.core.events import Event, EventType

logger = logging.getLogger(__name__)


@dataclass
class BroadcastStats:
    """
    Counts webhook outcomes and per-recipient delivery results.

    Usage:
        stats = BroadcastStats()
        bus.on("*", stats.handle)

        # Later, e.g. in /health
        stats.snapshot()
    """

    accepted: int = 0
    duplicates: int = 0
    rejected: int = 0
    broadcasts: int = 0
    broadcasts_failed: int = 0
    broadcasts_dropped: int = 0
    sent: int = 0
    failed: int = 0
    deactivated: int = 0
    last_content_id: str = ""
    _by_type: dict[str, int] = field(default_factory=dict, repr=False)

    async def handle(self, event: Event) -> None:
        self._by_type[event.type] = self._by_type.get(event.type, 0) + 1

        if event.type == EventType.WEBHOOK_ACCEPTED:
            self.accepted += 1
        elif event.type == EventType.WEBHOOK_DUPLICATE:
            self.duplicates += 1
        elif event.type == EventType.WEBHOOK_REJECTED:
            self.rejected += 1
        elif event.type == EventType.BROADCAST_COMPLETE:
            self.broadcasts += 1
            self.sent += int(event.data.get("sent", 0))
            self.failed += int(event.data.get("failed", 0))
            self.deactivated += int(event.data.get("deactivated", 0))
            self.last_content_id = str(event.data.get("content_id", ""))
        elif event.type == EventType.BROADCAST_FAILED:
            self.broadcasts_failed += 1
        elif event.type == EventType.BROADCAST_DROPPED:
            self.broadcasts_dropped += 1

    def count(self, event_type: str) -> int:
        """How many events of one type have been seen."""
        return self._by_type.get(event_type, 0)

    def snapshot(self) -> dict[str, Any]:
        return {
            "webhooks": {
                "accepted": self.accepted,
                "duplicates": self.duplicates,
                "rejected": self.rejected,
            },
            "broadcasts": {
                "completed": self.broadcasts,
                "failed": self.broadcasts_failed,
                "dropped": self.broadcasts_dropped,
                "last_content_id": self.last_content_id,
            },
            "deliveries": {
                "sent": self.sent,
                "failed": self.failed,
                "deactivated": self.deactivated,
            },
        }
