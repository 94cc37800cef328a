"""
Jellyfin webhook parsing.

The Jellyfin webhook plugin renders its JSON from a user-editable
template, so bodies arrive slightly broken in predictable ways:

    "SeasonNumber": ,          empty value before a comma
    "EpisodeNumber":           empty value before the closing brace
    }
    "EpisodeNumber": 04        zero-padded numeral

repair_json() fixes those before the body reaches the JSON parser, and
text fields are HTML-unescaped ("Am&#233;lie" → "Amélie") after parsing.
"""

from __future__ import annotations

import hmac
import html
import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from reel.core.errors import WebhookValidationError
from reel.core.types import (
    UNKNOWN_OVERVIEW,
    UNKNOWN_SERIES,
    UNKNOWN_TITLE,
    ContentType,
    NotificationPayload,
)

ITEM_ADDED = "ItemAdded"
SECRET_HEADER = "X-Webhook-Secret"

_EMPTY_VALUE = re.compile(r'"(\w+)":\s*(?=[,}])')
_ZERO_PADDED = re.compile(r'"(\w+)":\s*0+(\d)')


def repair_json(body: str) -> str:
    """Fill empty numeric values with 0 and strip leading zeros."""
    body = _EMPTY_VALUE.sub(r'"\1": 0', body)
    return _ZERO_PADDED.sub(r'"\1": \2', body)


def check_secret(provided: str | None, expected: str) -> bool:
    """True if no secret is configured or the provided one matches."""
    if not expected:
        return True
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class JellyfinWebhook(BaseModel):
    """The subset of the webhook plugin payload Reel understands."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    notification_type: str = Field("", alias="NotificationType")
    item_type: str = Field("", alias="ItemType")
    item_id: str = Field("", alias="ItemId")
    item_name: str = Field("", alias="ItemName")
    overview: str = Field("", alias="Overview")
    year: int = Field(0, alias="Year")
    series_name: str = Field("", alias="SeriesName")
    season_number: int = Field(0, alias="SeasonNumber")
    episode_number: int = Field(0, alias="EpisodeNumber")

    @field_validator("year", "season_number", "episode_number", mode="before")
    @classmethod
    def _lenient_int(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return 0
            try:
                return int(value)
            except ValueError:
                return 0
        return value

    @field_validator(
        "notification_type", "item_type", "item_id", "item_name",
        "overview", "series_name",
        mode="before",
    )
    @classmethod
    def _lenient_str(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def is_movie(self) -> bool:
        return self.item_type == ContentType.MOVIE.value

    @property
    def is_episode(self) -> bool:
        return self.item_type == ContentType.EPISODE.value

    @property
    def is_item_added(self) -> bool:
        return self.notification_type == ITEM_ADDED

    def rejection_reason(self) -> str:
        if not self.is_item_added:
            return f"notification type {self.notification_type!r} is not {ITEM_ADDED}"
        if not (self.is_movie or self.is_episode):
            return f"item type {self.item_type!r} is not Movie or Episode"
        if not self.item_id:
            return "missing ItemId"
        return ""

    def decode_entities(self) -> JellyfinWebhook:
        """Return a copy with HTML entities in text fields decoded."""
        return self.model_copy(
            update={
                "item_name": html.unescape(self.item_name),
                "overview": html.unescape(self.overview),
                "series_name": html.unescape(self.series_name),
            }
        )

    def to_payload(self) -> NotificationPayload:
        """Build the notification payload, filling placeholders for blanks."""
        content_type = ContentType.EPISODE if self.is_episode else ContentType.MOVIE
        series_name = ""
        season = episode = 0
        if content_type is ContentType.EPISODE:
            series_name = self.series_name.strip() or UNKNOWN_SERIES
            season, episode = self.season_number, self.episode_number

        return NotificationPayload(
            content_id=self.item_id,
            content_type=content_type,
            title=self.item_name.strip() or UNKNOWN_TITLE,
            overview=self.overview.strip() or UNKNOWN_OVERVIEW,
            year=self.year,
            series_name=series_name,
            season_number=season,
            episode_number=episode,
        )


def parse_webhook(body: bytes | str) -> JellyfinWebhook:
    """
    Parse a raw webhook body.

    Raises WebhookValidationError (status 400) if the body cannot be
    repaired into a JSON object of the expected shape.
    """
    if isinstance(body, bytes):
        try:
            text = body.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise WebhookValidationError(f"Body is not UTF-8: {e}") from e
    else:
        text = body

    repaired = repair_json(text)
    try:
        data = json.loads(repaired)
    except json.JSONDecodeError as e:
        raise WebhookValidationError(
            f"Invalid JSON payload: {e}", details={"raw_body": text[:2000]}
        ) from e

    return parse_webhook_data(data)


def parse_webhook_data(data: Any) -> JellyfinWebhook:
    """Validate an already-decoded body and decode HTML entities."""
    if not isinstance(data, dict):
        raise WebhookValidationError(
            f"Webhook body must be a JSON object, got {type(data).__name__}"
        )
    try:
        webhook = JellyfinWebhook.model_validate(data)
    except ValidationError as e:
        raise WebhookValidationError(f"Malformed webhook fields: {e}") from e
    return webhook.decode_entities()
