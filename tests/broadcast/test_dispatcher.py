"""Tests for the broadcast dispatcher."""

import asyncio

import pytest

from reel.broadcast.delivery import DeliveryLoop
from reel.broadcast.dispatcher import BroadcastDispatcher
from reel.core.events import EventType


class BlockingLoop:
    """Delivery loop stand-in that waits until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.delivered = []

    async def deliver(self, payload):
        await self.release.wait()
        self.delivered.append(payload.content_id)
        return None


@pytest.mark.asyncio
async def test_submit_returns_immediately_and_worker_delivers(store, transport, catalog, movie):
    await store.add_recipient(1)
    dispatcher = BroadcastDispatcher(DeliveryLoop(store, transport, catalog, send_delay=0))
    await dispatcher.start()
    try:
        assert dispatcher.submit(movie) is True
        await asyncio.wait_for(dispatcher.join(), timeout=2)
    finally:
        await dispatcher.stop()

    assert transport.recipients == [1]
    assert dispatcher.running is False


@pytest.mark.asyncio
async def test_full_queue_drops_payload(movie, episode, bus):
    dropped = []

    async def record(event):
        dropped.append(event.data["content_id"])

    bus.on(EventType.BROADCAST_DROPPED, record)
    dispatcher = BroadcastDispatcher(BlockingLoop(), queue_size=1, bus=bus)

    assert dispatcher.submit(movie) is True
    assert dispatcher.submit(episode) is False
    await asyncio.sleep(0.01)

    assert dispatcher.pending == 1
    assert dropped == ["e-1"]


@pytest.mark.asyncio
async def test_broadcasts_run_in_order(movie, episode):
    loop = BlockingLoop()
    dispatcher = BroadcastDispatcher(loop)
    await dispatcher.start()
    try:
        dispatcher.submit(movie)
        dispatcher.submit(episode)
        loop.release.set()
        await asyncio.wait_for(dispatcher.join(), timeout=2)
    finally:
        await dispatcher.stop()

    assert loop.delivered == ["m-1", "e-1"]


@pytest.mark.asyncio
async def test_exhausted_retries_reported(store, transport, catalog, movie, bus):
    failures = []

    async def record(event):
        failures.append(event.data)

    bus.on(EventType.BROADCAST_FAILED, record)
    store.list_active_failures = 10
    loop = DeliveryLoop(store, transport, catalog, send_delay=0)
    dispatcher = BroadcastDispatcher(loop, max_retries=1, backoff_unit=0, bus=bus)
    await dispatcher.start()
    try:
        dispatcher.submit(movie)
        await asyncio.wait_for(dispatcher.join(), timeout=2)
    finally:
        await dispatcher.stop()

    assert failures[0]["content_id"] == "m-1"
    assert failures[0]["attempts"] == 2
    assert transport.sent == []


@pytest.mark.asyncio
async def test_worker_survives_unexpected_error(movie, episode):
    class ExplodingOnce:
        def __init__(self):
            self.delivered = []

        async def deliver(self, payload):
            if not self.delivered and payload.content_id == "m-1":
                self.delivered.append("boom")
                raise RuntimeError("unexpected")
            self.delivered.append(payload.content_id)

    loop = ExplodingOnce()
    dispatcher = BroadcastDispatcher(loop)
    await dispatcher.start()
    try:
        dispatcher.submit(movie)
        dispatcher.submit(episode)
        await asyncio.wait_for(dispatcher.join(), timeout=2)
    finally:
        await dispatcher.stop()

    assert loop.delivered == ["boom", "e-1"]


@pytest.mark.asyncio
async def test_stop_cancels_in_flight_broadcast(movie):
    loop = BlockingLoop()
    dispatcher = BroadcastDispatcher(loop)
    await dispatcher.start()
    dispatcher.submit(movie)
    await asyncio.sleep(0.01)

    await asyncio.wait_for(dispatcher.stop(), timeout=2)

    assert loop.delivered == []
    assert dispatcher.running is False


@pytest.mark.asyncio
async def test_stop_with_timeout_drains_queue(movie):
    loop = BlockingLoop()
    loop.release.set()
    dispatcher = BroadcastDispatcher(loop)
    await dispatcher.start()
    dispatcher.submit(movie)

    await dispatcher.stop(timeout=2)

    assert loop.delivered == ["m-1"]
