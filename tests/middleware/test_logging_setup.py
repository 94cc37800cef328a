"""Tests for logging setup and the event log."""

import json
import logging

import pytest

from reel.core.events import Event, EventType
from reel.middleware.logging import EventLogger, parse_level, setup_logging


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" WARN ") == logging.WARNING
    assert parse_level("nonsense") == logging.INFO


def test_setup_logging_writes_file(tmp_path):
    logger = setup_logging(tmp_path)
    try:
        assert logger.name == "reel"
        assert len(logger.handlers) == 2
        assert list(tmp_path.glob("reel_*.log"))
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []


def test_setup_logging_console_only():
    logger = setup_logging("")
    try:
        assert len(logger.handlers) == 1
    finally:
        logger.handlers = []


@pytest.mark.asyncio
async def test_event_logger_appends_jsonl(tmp_path):
    event_logger = EventLogger(tmp_path)

    await event_logger.handle(
        Event(type=EventType.BROADCAST_COMPLETE, source="delivery", data={"sent": 2, "obj": object()})
    )
    await event_logger.handle(Event(type=EventType.WEBHOOK_ACCEPTED, data={"content_id": "42"}))

    lines = event_logger.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["type"] == "broadcast:complete"
    assert first["source"] == "delivery"
    assert first["data"]["sent"] == 2
    assert isinstance(first["data"]["obj"], str)
