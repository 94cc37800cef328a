"""
In-memory storage backends — for testing.

Dict-based, same uniqueness semantics as the SQLite store.
Data lost when process exits.
"""

from __future__ import annotations

from reel.core.errors import AlreadyExistsError, NotFoundError
from reel.core.types import LedgerEntry, MuteEntry, Recipient
from reel.store.base import ContentLedger, RecipientStore


class InMemoryLedger(ContentLedger):
    """
    Usage:
        ledger = InMemoryLedger()
        await ledger.insert("abc", "Interstellar", "Movie")
        assert await ledger.exists("abc")
    """

    def __init__(self) -> None:
        self._entries: dict[str, LedgerEntry] = {}

    async def exists(self, content_id: str) -> bool:
        return content_id in self._entries

    async def insert(self, content_id: str, title: str, content_type: str) -> None:
        if content_id in self._entries:
            raise AlreadyExistsError(f"Content '{content_id}' already recorded")
        self._entries[content_id] = LedgerEntry(content_id, title, content_type)

    def entries(self) -> list[LedgerEntry]:
        return list(self._entries.values())

    async def close(self) -> None:
        self._entries.clear()


class InMemoryRecipientStore(RecipientStore):
    """
    Usage:
        store = InMemoryRecipientStore()
        await store.add_recipient(42, "alex")
        await store.add_mute(42, "Breaking Bad", "Breaking Bad")
    """

    def __init__(self) -> None:
        self._recipients: dict[int, Recipient] = {}
        self._mutes: dict[tuple[int, str], MuteEntry] = {}

    async def add_recipient(
        self, recipient_id: int, username: str = "", display_name: str = ""
    ) -> Recipient:
        recipient = self._recipients.get(recipient_id)
        if recipient is None:
            recipient = Recipient(recipient_id, username, display_name)
            self._recipients[recipient_id] = recipient
        else:
            recipient.is_active = True
            recipient.username = username or recipient.username
            recipient.display_name = display_name or recipient.display_name
        return recipient

    async def get_recipient(self, recipient_id: int) -> Recipient | None:
        return self._recipients.get(recipient_id)

    async def list_recipients(self) -> list[Recipient]:
        return sorted(self._recipients.values(), key=lambda r: r.created_at)

    async def list_active(self) -> list[int]:
        return [r.recipient_id for r in self._recipients.values() if r.is_active]

    async def set_active(self, recipient_id: int, active: bool) -> None:
        recipient = self._recipients.get(recipient_id)
        if recipient is None:
            raise NotFoundError(f"Recipient {recipient_id} not found")
        recipient.is_active = active

    async def set_language(self, recipient_id: int, language_code: str) -> None:
        recipient = self._recipients.get(recipient_id)
        if recipient is None:
            raise NotFoundError(f"Recipient {recipient_id} not found")
        recipient.language_code = language_code

    async def get_language(self, recipient_id: int) -> str:
        recipient = self._recipients.get(recipient_id)
        return recipient.language_code if recipient else ""

    async def add_mute(self, recipient_id: int, series_key: str, series_name: str) -> None:
        key = (recipient_id, series_key)
        if key not in self._mutes:
            self._mutes[key] = MuteEntry(recipient_id, series_key, series_name)

    async def remove_mute(self, recipient_id: int, series_key: str) -> bool:
        return self._mutes.pop((recipient_id, series_key), None) is not None

    async def list_mutes(self, recipient_id: int) -> list[MuteEntry]:
        return [m for (rid, _), m in self._mutes.items() if rid == recipient_id]

    async def is_muted(self, recipient_id: int, series_key: str) -> bool:
        return (recipient_id, series_key) in self._mutes

    async def close(self) -> None:
        self._recipients.clear()
        self._mutes.clear()
