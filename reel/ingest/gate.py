"""
IngestionGate — decides, for one webhook, notify or drop.

    raw body ─► parse/repair ─► actionable? ─► ledger.exists? ─► ledger.insert ─► dispatcher
                    │                │               │                │
                 400 error        REJECTED        DUPLICATE    AlreadyExists → DUPLICATE

The ledger write always happens before the payload is handed off. A
crash between the two loses at most this one notification; a redelivered
webhook is recognised as a duplicate and never announced twice.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from reel.core.errors import AlreadyExistsError
from reel.core.events import Event, EventType
from reel.core.types import AdmitOutcome, AdmitResult
from reel.ingest.webhook import JellyfinWebhook, parse_webhook, parse_webhook_data
from reel.store.base import ContentLedger

if TYPE_CHECKING:
    from reel.broadcast.dispatcher import BroadcastDispatcher
    from reel.core.bus import EventBus

logger = logging.getLogger(__name__)


class IngestionGate:
    """
    Validates and deduplicates inbound content events.

    Usage:
        gate = IngestionGate(ledger, dispatcher=dispatcher, bus=bus)
        result = await gate.admit(request_body)
        if result.accepted:
            ...  # broadcast already queued

    Storage errors from the ledger propagate; the caller should answer
    with a server error so the source can redeliver.
    """

    def __init__(
        self,
        ledger: ContentLedger,
        dispatcher: "BroadcastDispatcher | None" = None,
        bus: "EventBus | None" = None,
    ) -> None:
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._bus = bus

    async def admit(self, raw: bytes | str | dict[str, Any]) -> AdmitResult:
        """Parse, validate, deduplicate and (on first sight) hand off one event."""
        if isinstance(raw, dict):
            webhook = parse_webhook_data(raw)
        else:
            webhook = parse_webhook(raw)
        return await self.admit_webhook(webhook)

    async def admit_webhook(self, webhook: JellyfinWebhook) -> AdmitResult:
        logger.info(
            f"Received webhook: type={webhook.notification_type!r} "
            f"item_type={webhook.item_type!r} item_id={webhook.item_id!r} "
            f"name={webhook.item_name!r}"
        )

        reason = webhook.rejection_reason()
        if reason:
            logger.debug(f"Webhook ignored: {reason}")
            await self._emit(
                EventType.WEBHOOK_REJECTED,
                {"content_id": webhook.item_id, "reason": reason},
            )
            return AdmitResult(AdmitOutcome.REJECTED, reason=reason)

        if await self._ledger.exists(webhook.item_id):
            return await self._duplicate(webhook)

        payload = webhook.to_payload()
        try:
            await self._ledger.insert(
                payload.content_id, payload.title, payload.content_type.value
            )
        except AlreadyExistsError:
            # Another request for the same item won the insert.
            return await self._duplicate(webhook)

        logger.info(
            f"New content ready for notification: id={payload.content_id} "
            f"type={payload.content_type.value} title={payload.title!r} year={payload.year}"
        )
        if payload.is_episode:
            logger.info(
                f"Episode details: series={payload.series_name!r} "
                f"S{payload.season_number:02d}E{payload.episode_number:02d}"
            )

        await self._emit(
            EventType.WEBHOOK_ACCEPTED,
            {
                "content_id": payload.content_id,
                "content_type": payload.content_type.value,
                "title": payload.title,
            },
        )

        if self._dispatcher is None:
            logger.warning("No broadcast dispatcher configured, notification not sent")
        else:
            self._dispatcher.submit(payload)

        return AdmitResult(AdmitOutcome.ACCEPTED, payload=payload)

    async def _duplicate(self, webhook: JellyfinWebhook) -> AdmitResult:
        logger.info(
            f"Content already notified, skipping: id={webhook.item_id} "
            f"name={webhook.item_name!r}"
        )
        await self._emit(EventType.WEBHOOK_DUPLICATE, {"content_id": webhook.item_id})
        return AdmitResult(AdmitOutcome.DUPLICATE, reason="already notified")

    async def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        if self._bus is not None:
            await self._bus.emit(Event(type=event_type, data=data, source="gate"))
