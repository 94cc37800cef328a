"""
Recipient selection — who gets one notification.

Applied in order:

    1. active recipients (duplicates collapsed, first occurrence kept)
    2. tester partition   testers-only mode, or synthetic content while
                          beta features are on
    3. mute filter        episodes with a series name only; a failed
                          lookup keeps the recipient

Movies are never muted. An empty result is a valid answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from reel.core.config import TestingConfig
from reel.core.types import NotificationPayload
from reel.store.base import RecipientStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Selection:
    """Delivery set plus how it was narrowed."""

    recipients: list[int] = field(default_factory=list)
    considered: int = 0
    testers_only: bool = False
    muted: int = 0
    lookup_errors: int = 0

    def __len__(self) -> int:
        return len(self.recipients)

    def __iter__(self):
        return iter(self.recipients)


def partition_testers(
    payload: NotificationPayload,
    recipients: Iterable[int],
    testing: TestingConfig,
) -> tuple[list[int], bool]:
    """
    Restrict to testers when staging rules say so.

    Returns the (possibly narrowed) list and whether narrowing applied.
    """
    candidates = list(dict.fromkeys(recipients))

    if testing.notify_only_testers:
        reason = "testers-only mode"
    elif payload.is_synthetic and testing.enable_beta_features:
        reason = "synthetic content"
    else:
        return candidates, False

    testers = [rid for rid in candidates if testing.is_tester(rid)]
    logger.info(
        f"Filtered to testers ({reason}): content={payload.content_id} "
        f"total={len(candidates)} testers={len(testers)}"
    )
    return testers, True


async def select_recipients(
    payload: NotificationPayload,
    recipients: Iterable[int],
    store: RecipientStore,
    testing: TestingConfig,
) -> Selection:
    """Compute the delivery set for one payload from the active recipients."""
    candidates, narrowed = partition_testers(payload, recipients, testing)
    selection = Selection(considered=len(candidates), testers_only=narrowed)

    if not (payload.is_episode and payload.series_name):
        selection.recipients = candidates
        return selection

    for rid in candidates:
        try:
            muted = await store.is_muted(rid, payload.series_name)
        except Exception as e:
            logger.error(
                f"Mute lookup failed, including recipient: chat_id={rid} "
                f"series={payload.series_name!r} error={e}"
            )
            selection.lookup_errors += 1
            selection.recipients.append(rid)
            continue

        if muted:
            selection.muted += 1
        else:
            selection.recipients.append(rid)

    if selection.muted:
        logger.info(
            f"Filtered muted recipients: muted={selection.muted} "
            f"series={payload.series_name!r}"
        )
    return selection
