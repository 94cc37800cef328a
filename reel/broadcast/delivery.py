"""
DeliveryLoop — fans one NotificationPayload out to every selected recipient.

Per broadcast:
    1. read the active recipients (failure here is a PipelineError,
       the only error the retry wrapper acts on)
    2. select recipients (tester partition, mute filter)
    3. fetch the poster once; no poster means text-only
    4. for each recipient, paced by send_delay:
         resolve language → render → send photo or text

A failed send never stops the loop. Unreachable recipients are
deactivated so the next broadcast skips them; everything else is
counted and logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from reel.broadcast.formatting import format_notification, mute_button
from reel.broadcast.selection import select_recipients
from reel.core.bus import EventBus
from reel.core.config import TestingConfig
from reel.core.errors import MediaError, PipelineError, TransportError
from reel.core.events import Event, EventType
from reel.core.types import DeliveryReport, NotificationPayload
from reel.i18n.catalog import TranslationCatalog
from reel.media.jellyfin import JellyfinClient
from reel.store.base import RecipientStore
from reel.transport.base import ChatTransport

logger = logging.getLogger(__name__)

SEND_DELAY = 0.035  # seconds between sends, under Telegram's ~30 msg/s

Sleeper = Callable[[float], Awaitable[None]]


class DeliveryLoop:
    """
    Usage:
        loop = DeliveryLoop(store, transport, catalog, media=jellyfin)
        report = await loop.deliver(payload)
        print(report.sent, report.failed, report.deactivated)
    """

    def __init__(
        self,
        store: RecipientStore,
        transport: ChatTransport,
        catalog: TranslationCatalog,
        media: JellyfinClient | None = None,
        testing: TestingConfig | None = None,
        send_delay: float = SEND_DELAY,
        default_language: str | None = None,
        bus: EventBus | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._store = store
        self._transport = transport
        self._catalog = catalog
        self._media = media
        self._testing = testing or TestingConfig()
        self._send_delay = send_delay
        self._default_language = default_language or catalog.default_language
        self._bus = bus
        self._sleep = sleep

    async def deliver(self, payload: NotificationPayload) -> DeliveryReport:
        """Run one broadcast to completion and report what happened."""
        try:
            active = await self._store.list_active()
        except Exception as e:
            raise PipelineError(
                f"Failed to load active recipients: {e}",
                content_id=payload.content_id,
            ) from e

        report = DeliveryReport(content_id=payload.content_id, total_active=len(active))

        selection = await select_recipients(payload, active, self._store, self._testing)
        report.selected = len(selection)
        report.muted = selection.muted

        if not selection.recipients:
            logger.info(f"No recipients for {payload.content_id}, nothing to send")
            await self._emit(EventType.BROADCAST_COMPLETE, report.to_dict())
            return report

        poster = await self._fetch_poster(payload)
        report.with_poster = poster is not None

        logger.info(
            f"Broadcasting {payload.content_type.value} {payload.title!r} "
            f"to {report.selected} recipients (poster={report.with_poster})"
        )
        await self._emit(
            EventType.BROADCAST_START,
            {
                "content_id": payload.content_id,
                "title": payload.title,
                "recipients": report.selected,
                "with_poster": report.with_poster,
            },
        )

        for recipient_id in selection.recipients:
            await self._sleep(self._send_delay)
            await self._deliver_one(payload, recipient_id, poster, report)

        logger.info(
            f"Broadcast complete for {payload.content_id}: sent={report.sent} "
            f"failed={report.failed} deactivated={report.deactivated}"
        )
        await self._emit(EventType.BROADCAST_COMPLETE, report.to_dict())
        return report

    # ── Per recipient ─────────────────────────────────────────────

    async def _deliver_one(
        self,
        payload: NotificationPayload,
        recipient_id: int,
        poster: bytes | None,
        report: DeliveryReport,
    ) -> None:
        language = await self._language_for(recipient_id)
        text = format_notification(payload, self._catalog, language)
        button = mute_button(payload, self._catalog, language)

        try:
            if poster is not None:
                await self._transport.send_photo(recipient_id, poster, text, button)
            else:
                await self._transport.send_text(recipient_id, text, button)
        except TransportError as e:
            if e.unreachable:
                await self._deactivate(recipient_id, e, report)
            else:
                await self._record_failure(recipient_id, e, report)
            return
        except Exception as e:
            await self._record_failure(recipient_id, e, report)
            return

        report.sent += 1

    async def _language_for(self, recipient_id: int) -> str:
        try:
            saved = await self._store.get_language(recipient_id)
        except Exception as e:
            logger.warning(f"Language lookup failed for chat {recipient_id}: {e}")
            return self._default_language
        if not saved:
            return self._default_language
        return self._catalog.detect_language(saved)

    async def _deactivate(
        self,
        recipient_id: int,
        error: TransportError,
        report: DeliveryReport,
    ) -> None:
        logger.info(f"Recipient {recipient_id} unreachable, deactivating: {error.message}")
        try:
            await self._store.deactivate(recipient_id)
        except Exception as e:
            logger.error(f"Failed to deactivate recipient {recipient_id}: {e}")
            report.deactivated += 1
            report.deactivation_errors += 1
            return

        report.deactivated += 1
        await self._emit(
            EventType.RECIPIENT_DEACTIVATED,
            {"recipient_id": recipient_id, "reason": error.message},
        )

    async def _record_failure(
        self,
        recipient_id: int,
        error: Exception,
        report: DeliveryReport,
    ) -> None:
        logger.error(f"Failed to send notification to chat {recipient_id}: {error}")
        report.failed += 1
        await self._emit(
            EventType.DELIVERY_FAILED,
            {"recipient_id": recipient_id, "error": str(error)},
        )

    # ── Helpers ───────────────────────────────────────────────────

    async def _fetch_poster(self, payload: NotificationPayload) -> bytes | None:
        if self._media is None:
            return None
        try:
            return await self._media.fetch_poster(payload.content_id)
        except MediaError as e:
            logger.warning(f"Poster unavailable for {payload.content_id}, sending text only: {e}")
            return None
        except Exception as e:
            logger.error(f"Poster fetch crashed for {payload.content_id}, sending text only: {e}")
            return None

    async def _emit(self, event_type: str, data: dict) -> None:
        if self._bus is not None:
            await self._bus.emit(Event(type=event_type, data=data, source="delivery"))
