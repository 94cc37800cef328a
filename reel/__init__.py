"""
Reel — new-content notifications from Jellyfin to Telegram.

Public API:
    from reel import IngestionGate, DeliveryLoop, BroadcastDispatcher, ReelConfig
"""

__version__ = "0.1.0"

# Core
from reel.core.config import ReelConfig
from reel.core.events import Event, EventType
from reel.core.types import AdmitOutcome, AdmitResult, ContentType, DeliveryReport, NotificationPayload

# Pipeline
from reel.ingest.gate import IngestionGate
from reel.broadcast.delivery import DeliveryLoop
from reel.broadcast.dispatcher import BroadcastDispatcher
from reel.broadcast.retry import deliver_with_retry

__all__ = [
    # Core
    "ReelConfig",
    "Event",
    "EventType",
    "AdmitOutcome",
    "AdmitResult",
    "ContentType",
    "DeliveryReport",
    "NotificationPayload",
    # Pipeline
    "IngestionGate",
    "DeliveryLoop",
    "BroadcastDispatcher",
    "deliver_with_retry",
]
