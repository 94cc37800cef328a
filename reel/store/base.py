"""
Storage interfaces.

Two capabilities, kept separate because they have different owners:

    ContentLedger   — written only by the ingestion gate
    RecipientStore  — activation flips by the delivery loop, everything
                      else by the user-facing command layer

Implementations:
    SQLiteStore      — file-based, default (implements both)
    InMemoryLedger / InMemoryRecipientStore — for testing

Uniqueness is the store's job. Callers never lock: a duplicate ledger
insert raises AlreadyExistsError, a duplicate mute is a silent no-op.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from reel.core.types import MuteEntry, Recipient


class ContentLedger(ABC):
    """Remembers which content ids have already been announced."""

    @abstractmethod
    async def exists(self, content_id: str) -> bool:
        """True if the content id was announced before."""
        ...

    @abstractmethod
    async def insert(self, content_id: str, title: str, content_type: str) -> None:
        """
        Record a content id.

        Raises AlreadyExistsError if the id is present. The existing row
        is never overwritten.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class RecipientStore(ABC):
    """Subscriber registry, mute flags and language preferences."""

    # ── Registry ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def add_recipient(
        self, recipient_id: int, username: str = "", display_name: str = ""
    ) -> Recipient:
        """Create the recipient, or re-activate it if it already exists."""
        ...

    @abstractmethod
    async def get_recipient(self, recipient_id: int) -> Recipient | None:
        ...

    @abstractmethod
    async def list_recipients(self) -> list[Recipient]:
        """Every recipient, active or not, oldest first."""
        ...

    @abstractmethod
    async def list_active(self) -> list[int]:
        """Ids of every active recipient."""
        ...

    @abstractmethod
    async def set_active(self, recipient_id: int, active: bool) -> None:
        """Flip is_active. Raises NotFoundError for an unknown recipient."""
        ...

    async def deactivate(self, recipient_id: int) -> None:
        await self.set_active(recipient_id, False)

    async def is_subscribed(self, recipient_id: int) -> bool:
        recipient = await self.get_recipient(recipient_id)
        return recipient is not None and recipient.is_active

    # ── Language ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def set_language(self, recipient_id: int, language_code: str) -> None:
        """Store a language preference. Raises NotFoundError if unknown."""
        ...

    @abstractmethod
    async def get_language(self, recipient_id: int) -> str:
        """Stored language code, or "" when none was chosen."""
        ...

    # ── Mutes ─────────────────────────────────────────────────────────────────

    @abstractmethod
    async def add_mute(self, recipient_id: int, series_key: str, series_name: str) -> None:
        """Mute a series. Muting an already-muted series is a no-op."""
        ...

    @abstractmethod
    async def remove_mute(self, recipient_id: int, series_key: str) -> bool:
        """Unmute a series. Returns True if a mute existed."""
        ...

    @abstractmethod
    async def list_mutes(self, recipient_id: int) -> list[MuteEntry]:
        ...

    @abstractmethod
    async def is_muted(self, recipient_id: int, series_key: str) -> bool:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
