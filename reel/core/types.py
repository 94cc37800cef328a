"""
Reel shared types — every data object that crosses a layer boundary.

All types are dataclasses. Frozen where immutability makes sense:
a NotificationPayload is built once per event and shared, unchanged,
by every recipient of the broadcast.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import time


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums & Constants
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ContentType(str, Enum):
    """Media kinds that produce notifications."""

    MOVIE = "Movie"
    EPISODE = "Episode"


class AdmitOutcome(str, Enum):
    """What the ingestion gate decided for one webhook."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


UNKNOWN_TITLE = "Unknown"
UNKNOWN_OVERVIEW = "No description available"
UNKNOWN_SERIES = "Unknown Series"

SYNTHETIC_ID_PREFIX = "test-"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Notification
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    """
    Normalized content announcement.

    Placeholders are already applied: title, overview and (for episodes)
    series_name are never empty.
    """

    content_id: str
    content_type: ContentType
    title: str
    overview: str
    year: int = 0
    rating: float = 0.0
    series_name: str = ""
    season_number: int = 0
    episode_number: int = 0

    @property
    def is_episode(self) -> bool:
        return self.content_type is ContentType.EPISODE

    @property
    def is_movie(self) -> bool:
        return self.content_type is ContentType.MOVIE

    @property
    def is_synthetic(self) -> bool:
        """Staged or test traffic, identified by a "test-" content id."""
        return self.content_id.startswith(SYNTHETIC_ID_PREFIX)

    @property
    def has_real_series(self) -> bool:
        """True for episodes whose series name is known (not a placeholder)."""
        return (
            self.is_episode
            and bool(self.series_name)
            and self.series_name != UNKNOWN_SERIES
        )


@dataclass(slots=True)
class AdmitResult:
    """Outcome of IngestionGate.admit()."""

    outcome: AdmitOutcome
    payload: NotificationPayload | None = None
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome is AdmitOutcome.ACCEPTED


@dataclass(slots=True)
class DeliveryReport:
    """Counters for one completed delivery loop."""

    content_id: str
    total_active: int = 0
    selected: int = 0
    muted: int = 0
    sent: int = 0
    failed: int = 0
    deactivated: int = 0
    deactivation_errors: int = 0
    with_poster: bool = False

    def to_dict(self) -> dict:
        return {
            "content_id": self.content_id,
            "total_active": self.total_active,
            "selected": self.selected,
            "muted": self.muted,
            "sent": self.sent,
            "failed": self.failed,
            "deactivated": self.deactivated,
            "deactivation_errors": self.deactivation_errors,
            "with_poster": self.with_poster,
        }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Stored Records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(slots=True)
class LedgerEntry:
    """A content id that has already been announced."""

    content_id: str
    title: str
    content_type: str
    created_at: int = field(default_factory=lambda: int(time.time()))


@dataclass(slots=True)
class Recipient:
    """A chat that opted in to notifications."""

    recipient_id: int
    username: str = ""
    display_name: str = ""
    is_active: bool = True
    language_code: str = ""
    created_at: int = field(default_factory=lambda: int(time.time()))


@dataclass(slots=True)
class MuteEntry:
    """A series one recipient no longer wants episode notifications for."""

    recipient_id: int
    series_key: str
    series_name: str
    created_at: int = field(default_factory=lambda: int(time.time()))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Transport
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True, slots=True)
class InlineButton:
    """A single callback button attached under a message."""

    text: str
    callback_data: str

    def to_markup(self) -> dict:
        return {
            "inline_keyboard": [
                [{"text": self.text, "callback_data": self.callback_data}]
            ]
        }
