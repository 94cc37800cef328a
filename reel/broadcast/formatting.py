"""
Per-recipient message rendering.

The payload is shared by the whole broadcast; the rendered text is not.
Each recipient gets the same facts in their own language, so these
functions run inside the delivery loop, once per recipient.
"""

from __future__ import annotations

import logging

from reel.core.types import InlineButton, NotificationPayload
from reel.i18n.catalog import TranslationCatalog

logger = logging.getLogger(__name__)

MUTE_CALLBACK_PREFIX = "mute:"
MAX_CALLBACK_BYTES = 64  # Telegram limit for callback_data


def format_notification(
    payload: NotificationPayload,
    catalog: TranslationCatalog,
    language: str,
) -> str:
    """Render the announcement text for one language."""

    def t(key: str, **data: object) -> str:
        return catalog.render(language, key, **data)

    lines: list[str] = []

    if payload.is_movie:
        lines.append(t("notification.movie.header"))
        lines.append("")
        lines.append(t("content.field.name", name=payload.title))
        if payload.year > 0:
            lines.append(t("content.field.year", year=payload.year))
    else:
        lines.append(t("notification.episode.header"))
        lines.append("")
        lines.append(t("content.field.series", series_name=payload.series_name or payload.title))
        lines.append(
            t(
                "content.field.episode_number",
                season_number=payload.season_number,
                episode_number=payload.episode_number,
            )
        )
        if payload.title and payload.series_name:
            lines.append(t("content.field.episode_name", name=payload.title))

    if payload.overview:
        lines.append("")
        lines.append(t("content.field.description", description=payload.overview))

    if payload.rating > 0:
        lines.append("")
        lines.append(t("content.field.rating", rating=f"{payload.rating:.1f}"))

    return "\n".join(lines)


def mute_callback_data(series_name: str) -> str:
    return f"{MUTE_CALLBACK_PREFIX}{series_name}"


def mute_button(
    payload: NotificationPayload,
    catalog: TranslationCatalog,
    language: str,
) -> InlineButton | None:
    """
    The "mute this series" button, for episodes of a known series only.

    Movies and placeholder series names never get one. Series names too
    long for Telegram's callback data are skipped as well: an oversized
    button would make the platform reject the whole message.
    """
    if not payload.has_real_series:
        return None

    data = mute_callback_data(payload.series_name)
    if len(data.encode("utf-8")) > MAX_CALLBACK_BYTES:
        logger.debug(f"Skipping mute button, series name too long: {payload.series_name!r}")
        return None

    return InlineButton(text=catalog.render(language, "button.mute"), callback_data=data)
