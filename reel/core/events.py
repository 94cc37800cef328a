"""
Reel lifecycle events.

The gate and the broadcast engine announce what they did on the EventBus.
Nothing in the delivery path depends on these events; they exist so that
logs, counters and tests can observe broadcast outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import time
import uuid


class EventType:
    """
    Event type constants.

    Hierarchical naming: "category:action"
    Supports wildcard matching: "broadcast:*" matches "broadcast:complete"
    """

    # Ingestion
    WEBHOOK_ACCEPTED = "webhook:accepted"
    WEBHOOK_DUPLICATE = "webhook:duplicate"
    WEBHOOK_REJECTED = "webhook:rejected"

    # Broadcast lifecycle
    BROADCAST_QUEUED = "broadcast:queued"
    BROADCAST_DROPPED = "broadcast:dropped"
    BROADCAST_START = "broadcast:start"
    BROADCAST_RETRY = "broadcast:retry"
    BROADCAST_COMPLETE = "broadcast:complete"
    BROADCAST_FAILED = "broadcast:failed"

    # Per recipient
    RECIPIENT_DEACTIVATED = "recipient:deactivated"
    DELIVERY_FAILED = "delivery:failed"

    ALL = "*"


@dataclass(slots=True)
class Event:
    """A single thing that happened, with a free-form data payload."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: float = field(default_factory=time.time)
