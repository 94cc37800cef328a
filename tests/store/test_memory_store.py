"""Tests for the in-memory stores."""

import pytest

from reel.core.errors import AlreadyExistsError, NotFoundError
from reel.store.memory import InMemoryLedger, InMemoryRecipientStore


# ━━━ Ledger ━━━


@pytest.mark.asyncio
async def test_ledger_insert_and_exists():
    ledger = InMemoryLedger()
    assert await ledger.exists("42") is False
    await ledger.insert("42", "Interstellar", "Movie")
    assert await ledger.exists("42") is True
    assert ledger.entries()[0].title == "Interstellar"


@pytest.mark.asyncio
async def test_ledger_duplicate_insert_raises():
    ledger = InMemoryLedger()
    await ledger.insert("42", "Interstellar", "Movie")
    with pytest.raises(AlreadyExistsError):
        await ledger.insert("42", "Other", "Movie")
    assert ledger.entries()[0].title == "Interstellar"


# ━━━ Recipients ━━━


@pytest.mark.asyncio
async def test_add_and_list_active():
    store = InMemoryRecipientStore()
    await store.add_recipient(1, "alice")
    await store.add_recipient(2, "bob")
    await store.deactivate(2)

    assert await store.list_active() == [1]
    assert await store.is_subscribed(1) is True
    assert await store.is_subscribed(2) is False
    assert await store.is_subscribed(3) is False


@pytest.mark.asyncio
async def test_add_recipient_reactivates():
    store = InMemoryRecipientStore()
    await store.add_recipient(1, "alice", "Alice")
    await store.set_active(1, False)

    recipient = await store.add_recipient(1)

    assert recipient.is_active is True
    assert recipient.username == "alice"
    assert recipient.display_name == "Alice"


@pytest.mark.asyncio
async def test_set_active_unknown_raises():
    store = InMemoryRecipientStore()
    with pytest.raises(NotFoundError):
        await store.set_active(99, False)


@pytest.mark.asyncio
async def test_language_roundtrip():
    store = InMemoryRecipientStore()
    await store.add_recipient(1)
    assert await store.get_language(1) == ""
    await store.set_language(1, "fa")
    assert await store.get_language(1) == "fa"
    assert await store.get_language(404) == ""
    with pytest.raises(NotFoundError):
        await store.set_language(404, "en")


# ━━━ Mutes ━━━


@pytest.mark.asyncio
async def test_mute_is_idempotent():
    store = InMemoryRecipientStore()
    await store.add_mute(1, "Breaking Bad", "Breaking Bad")
    await store.add_mute(1, "Breaking Bad", "Breaking Bad")

    assert len(await store.list_mutes(1)) == 1
    assert await store.is_muted(1, "Breaking Bad") is True
    assert await store.is_muted(2, "Breaking Bad") is False


@pytest.mark.asyncio
async def test_remove_mute():
    store = InMemoryRecipientStore()
    await store.add_mute(1, "Dark", "Dark")

    assert await store.remove_mute(1, "Dark") is True
    assert await store.remove_mute(1, "Dark") is False
    assert await store.is_muted(1, "Dark") is False
