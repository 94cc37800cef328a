"""
Reel HTTP server.

Endpoints:
- POST /webhook  -> Jellyfin "item added" notifications
- GET  /health   -> liveness, version, uptime and broadcast counters

Usage:
    uvicorn reel.server.app:create_app --factory
    # or: reel serve
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Header, HTTPException, Request

from reel import __version__
from reel.broadcast.delivery import DeliveryLoop
from reel.broadcast.dispatcher import BroadcastDispatcher
from reel.core.bus import EventBus
from reel.core.config import ReelConfig
from reel.core.errors import StorageError, WebhookValidationError
from reel.core.events import EventType
from reel.i18n.catalog import TranslationCatalog
from reel.ingest.gate import IngestionGate
from reel.ingest.webhook import check_secret
from reel.media.jellyfin import JellyfinClient
from reel.middleware.logging import EventLogger
from reel.middleware.stats import BroadcastStats
from reel.store.base import ContentLedger, RecipientStore
from reel.store.sqlite import SQLiteStore
from reel.transport.base import ChatTransport
from reel.transport.telegram import TelegramTransport

logger = logging.getLogger(__name__)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Wiring
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Services:
    """Everything a running server holds on to."""

    config: ReelConfig
    ledger: ContentLedger
    recipients: RecipientStore
    transport: ChatTransport
    media: JellyfinClient | None
    catalog: TranslationCatalog
    bus: EventBus
    stats: BroadcastStats
    dispatcher: BroadcastDispatcher
    gate: IngestionGate
    started_at: float = field(default_factory=time.time)

    async def start(self) -> None:
        await self.dispatcher.start()

    async def close(self) -> None:
        await self.dispatcher.stop(timeout=5.0)
        await self.transport.close()
        if self.media is not None:
            await self.media.close()
        await self.ledger.close()
        if self.recipients is not self.ledger:
            await self.recipients.close()


async def build_services(
    config: ReelConfig,
    ledger: ContentLedger | None = None,
    recipients: RecipientStore | None = None,
    transport: ChatTransport | None = None,
    media: JellyfinClient | None = None,
    catalog: TranslationCatalog | None = None,
) -> Services:
    """
    Assemble the pipeline from config.

    Any collaborator passed in is used as is; the rest are built from
    config. Without stores, one SQLiteStore serves as both.
    """
    if ledger is None or recipients is None:
        store = SQLiteStore(config.get_database_path())
        await store.initialize()
        ledger = ledger or store
        recipients = recipients or store

    if transport is None:
        transport = TelegramTransport(
            config.telegram.token,
            api_base=config.telegram.api_base,
            timeout=config.telegram.timeout,
        )

    if media is None and config.jellyfin.configured:
        media = JellyfinClient(
            config.jellyfin.server_url,
            config.jellyfin.api_key,
            timeout=config.jellyfin.timeout,
        )

    if catalog is None:
        catalog = TranslationCatalog.load(default_language=config.broadcast.default_language)

    bus = EventBus()
    stats = BroadcastStats()
    bus.on(EventType.ALL, stats.handle)
    if config.logging.events_log and config.logging.log_dir:
        bus.on(EventType.ALL, EventLogger(Path(config.logging.log_dir)).handle)

    delivery = DeliveryLoop(
        recipients,
        transport,
        catalog,
        media=media,
        testing=config.testing,
        send_delay=config.broadcast.send_delay,
        default_language=catalog.detect_language(config.broadcast.default_language),
        bus=bus,
    )
    dispatcher = BroadcastDispatcher(
        delivery,
        max_retries=config.broadcast.max_retries,
        backoff_unit=config.broadcast.backoff_unit,
        queue_size=config.broadcast.queue_size,
        bus=bus,
    )
    gate = IngestionGate(ledger, dispatcher=dispatcher, bus=bus)

    return Services(
        config=config,
        ledger=ledger,
        recipients=recipients,
        transport=transport,
        media=media,
        catalog=catalog,
        bus=bus,
        stats=stats,
        dispatcher=dispatcher,
        gate=gate,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Application
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def create_app(
    config: ReelConfig | None = None,
    ledger: ContentLedger | None = None,
    recipients: RecipientStore | None = None,
    transport: ChatTransport | None = None,
    media: JellyfinClient | None = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Services are assembled on startup; collaborators passed here replace
    the ones config would build (in-memory stores, fake transports).
    """
    config = config or ReelConfig.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = await build_services(
            config, ledger=ledger, recipients=recipients, transport=transport, media=media
        )
        app.state.services = svc
        await svc.start()
        logger.info(f"Reel {__version__} ready, webhook secret {'set' if config.webhook.secret else 'not set'}")
        try:
            yield
        finally:
            logger.info("Shutting down")
            await svc.close()

    app = FastAPI(
        title="Reel",
        version=__version__,
        description="Jellyfin to Telegram new-content notifier",
        lifespan=lifespan,
    )
    app.state.config = config

    @app.post("/webhook")
    async def receive_webhook(
        request: Request,
        x_webhook_secret: str | None = Header(default=None),
    ):
        """Admit one Jellyfin event. Broadcasting happens in the background."""
        if not check_secret(x_webhook_secret, config.webhook.secret):
            logger.warning(f"Rejected webhook with bad secret from {_client_host(request)}")
            raise HTTPException(status_code=401, detail="Invalid webhook secret")

        svc: Services = request.app.state.services
        body = await request.body()
        try:
            result = await svc.gate.admit(body)
        except WebhookValidationError as e:
            logger.error(f"Invalid webhook payload: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message) from e
        except StorageError as e:
            logger.error(f"Ledger unavailable, asking for redelivery: {e}")
            raise HTTPException(status_code=500, detail="Storage error") from e

        response = {"ok": True, "outcome": result.outcome.value}
        if result.payload is not None:
            response["content_id"] = result.payload.content_id
        if result.reason:
            response["reason"] = result.reason
        return response

    @app.get("/health")
    async def health(request: Request):
        """Liveness plus running counters."""
        svc: Services = request.app.state.services
        return {
            "status": "ok",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.time() - svc.started_at, 3),
            "queue": svc.dispatcher.pending,
            "stats": svc.stats.snapshot(),
        }

    return app


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"
