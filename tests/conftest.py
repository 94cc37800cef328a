"""Shared test fixtures for Reel."""

import pytest

from reel.core.bus import EventBus
from reel.core.config import ReelConfig, TestingConfig
from reel.core.errors import MediaError, StorageError
from reel.core.types import ContentType, InlineButton, NotificationPayload
from reel.i18n.catalog import TranslationCatalog
from reel.store.memory import InMemoryLedger, InMemoryRecipientStore
from reel.transport.base import ChatTransport


# ━━━ Fakes ━━━


class FakeTransport(ChatTransport):
    """Records every send. Recipients listed in `failures` raise instead."""

    def __init__(self, failures: dict[int, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.sent: list[dict] = []
        self.attempts: list[int] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    async def send_text(self, recipient_id: int, text: str, button: InlineButton | None = None) -> None:
        self._record("text", recipient_id, text, button, None)

    async def send_photo(
        self, recipient_id: int, photo: bytes, caption: str, button: InlineButton | None = None
    ) -> None:
        self._record("photo", recipient_id, caption, button, photo)

    def _record(self, kind, recipient_id, text, button, photo) -> None:
        self.attempts.append(recipient_id)
        error = self.failures.get(recipient_id)
        if error is not None:
            raise error
        self.sent.append(
            {"kind": kind, "recipient_id": recipient_id, "text": text, "button": button, "photo": photo}
        )

    @property
    def recipients(self) -> list[int]:
        return [m["recipient_id"] for m in self.sent]

    async def close(self) -> None:
        self.closed = True


class FakeMedia:
    """Stands in for JellyfinClient.fetch_poster."""

    def __init__(self, poster: bytes | None = b"\xff\xd8poster") -> None:
        self.poster = poster
        self.calls: list[str] = []
        self.closed = False

    async def fetch_poster(self, item_id: str) -> bytes:
        self.calls.append(item_id)
        if self.poster is None:
            raise MediaError(f"Resource not found: /Items/{item_id}/Images/Primary", status_code=404)
        return self.poster

    async def close(self) -> None:
        self.closed = True


class FlakyRecipientStore(InMemoryRecipientStore):
    """In-memory store whose reads can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.list_active_failures = 0
        self.mute_lookup_fails = False
        self.language_lookup_fails = False
        self.deactivate_fails = False

    async def list_active(self) -> list[int]:
        if self.list_active_failures > 0:
            self.list_active_failures -= 1
            raise StorageError("database is locked")
        return await super().list_active()

    async def is_muted(self, recipient_id: int, series_key: str) -> bool:
        if self.mute_lookup_fails:
            raise StorageError("mute table unavailable")
        return await super().is_muted(recipient_id, series_key)

    async def get_language(self, recipient_id: int) -> str:
        if self.language_lookup_fails:
            raise StorageError("language lookup failed")
        return await super().get_language(recipient_id)

    async def set_active(self, recipient_id: int, active: bool) -> None:
        if self.deactivate_fails and not active:
            raise StorageError("read-only database")
        await super().set_active(recipient_id, active)


# ━━━ Fixtures ━━━


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return ReelConfig()


@pytest.fixture
def testing():
    return TestingConfig()


@pytest.fixture
def bus():
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def catalog():
    """The bundled en/fa catalog."""
    return TranslationCatalog.load()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def store():
    return FlakyRecipientStore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def movie():
    return NotificationPayload(
        content_id="m-1",
        content_type=ContentType.MOVIE,
        title="Interstellar",
        overview="A team travels through a wormhole.",
        year=2014,
        rating=8.6,
    )


@pytest.fixture
def episode():
    return NotificationPayload(
        content_id="e-1",
        content_type=ContentType.EPISODE,
        title="Pilot",
        overview="Walter White gets a diagnosis.",
        year=2008,
        series_name="Breaking Bad",
        season_number=1,
        episode_number=1,
    )


@pytest.fixture
def make_transport():
    """FakeTransport factory, for tests that need scripted failures."""
    return FakeTransport


@pytest.fixture
def make_media():
    return FakeMedia
