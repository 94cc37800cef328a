"""
Chat transport interface.

The delivery loop only ever talks to a ChatTransport. Implementations
must raise TransportError with a structured kind:

    FailureKind.UNREACHABLE  the recipient can never be reached again
                             (blocked the bot, account deleted, chat gone)
    FailureKind.TRANSIENT    anything else

Working out which is which from a platform's error text is the
adapter's job, never the caller's.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from reel.core.types import InlineButton


class ChatTransport(ABC):
    """Abstract outbound chat channel."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'telegram'."""
        ...

    @abstractmethod
    async def send_text(
        self,
        recipient_id: int,
        text: str,
        button: InlineButton | None = None,
    ) -> None:
        """Send a text message, optionally with one inline button."""
        ...

    @abstractmethod
    async def send_photo(
        self,
        recipient_id: int,
        photo: bytes,
        caption: str,
        button: InlineButton | None = None,
    ) -> None:
        """Send an image with a caption, optionally with one inline button."""
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
