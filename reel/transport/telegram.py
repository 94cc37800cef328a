"""
TelegramTransport — sends notifications through the Telegram Bot API.

Requires config:
    [telegram]
    token = "BOT_TOKEN"

Error classification happens here. Telegram reports an unreachable chat
as a 400/403 with a human readable description; those descriptions are
matched against UNREACHABLE_MARKERS and surfaced as
TransportError(kind=UNREACHABLE). Everything else, network failures
included, is TRANSIENT.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from reel.core.errors import FailureKind, TransportError
from reel.core.types import InlineButton
from reel.transport.base import ChatTransport

logger = logging.getLogger(__name__)

UNREACHABLE_MARKERS = (
    "blocked",
    "user is deactivated",
    "chat not found",
    "bot was kicked",
)

MAX_TEXT_LENGTH = 4096
MAX_CAPTION_LENGTH = 1024


def classify_failure(description: str) -> FailureKind:
    """Decide from Telegram's error description whether the chat is gone."""
    lowered = description.lower()
    if any(marker in lowered for marker in UNREACHABLE_MARKERS):
        return FailureKind.UNREACHABLE
    return FailureKind.TRANSIENT


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


class TelegramTransport(ChatTransport):
    """
    Usage:
        transport = TelegramTransport(token)
        await transport.send_text(12345, "hello")
        await transport.close()

    Pass an httpx.AsyncClient to share a connection pool or to test
    against httpx.MockTransport.
    """

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token.strip()
        self._base = f"{api_base.rstrip('/')}/bot{self._token}"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "telegram"

    async def send_text(
        self,
        recipient_id: int,
        text: str,
        button: InlineButton | None = None,
    ) -> None:
        body: dict[str, Any] = {
            "chat_id": recipient_id,
            "text": _truncate(text, MAX_TEXT_LENGTH),
        }
        if button is not None:
            body["reply_markup"] = button.to_markup()
        await self._call("sendMessage", recipient_id, json_body=body)

    async def send_photo(
        self,
        recipient_id: int,
        photo: bytes,
        caption: str,
        button: InlineButton | None = None,
    ) -> None:
        data: dict[str, Any] = {
            "chat_id": str(recipient_id),
            "caption": _truncate(caption, MAX_CAPTION_LENGTH),
        }
        if button is not None:
            data["reply_markup"] = json.dumps(button.to_markup(), ensure_ascii=False)
        files = {"photo": ("poster.jpg", photo, "image/jpeg")}
        await self._call("sendPhoto", recipient_id, data=data, files=files)

    async def _call(
        self,
        method: str,
        recipient_id: int | None,
        json_body: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base}/{method}"
        try:
            if json_body is not None:
                resp = await self._client.post(url, json=json_body)
            else:
                resp = await self._client.post(url, data=data, files=files)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Telegram {method} request failed: {e}",
                kind=FailureKind.TRANSIENT,
                recipient_id=recipient_id,
            ) from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        if resp.status_code >= 400 or not payload.get("ok", False):
            description = str(payload.get("description") or resp.reason_phrase or "")
            kind = classify_failure(description)
            raise TransportError(
                f"Telegram {method} failed ({resp.status_code}): {description}",
                kind=kind,
                recipient_id=recipient_id,
                details={
                    "status_code": resp.status_code,
                    "error_code": payload.get("error_code"),
                    "retry_after": (payload.get("parameters") or {}).get("retry_after"),
                },
            )

        logger.debug(f"Telegram {method} ok for chat {recipient_id}")
        return payload

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
