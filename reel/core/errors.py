"""
Reel exception hierarchy.

Every error in the system inherits from ReelError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        await transport.send_text(chat_id, text)
    except TransportError as e:
        if e.unreachable:
            # recipient blocked the bot / chat is gone
    except ReelError as e:
        # Handle any Reel error
"""

from __future__ import annotations

from enum import Enum


class ReelError(Exception):
    """Base exception for all Reel errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Configuration ━━━


class ConfigError(ReelError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Storage ━━━


class StorageError(ReelError):
    """Storage backend failure: database errors or corruption."""

    pass


class AlreadyExistsError(StorageError):
    """Insert hit a unique constraint. The existing row was left untouched."""

    pass


class NotFoundError(StorageError):
    """Update or delete matched no row."""

    pass


# ━━━ Ingestion ━━━


class WebhookValidationError(ReelError):
    """Inbound webhook is unauthenticated or structurally unparseable."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


# ━━━ Collaborators ━━━


class FailureKind(str, Enum):
    """How a failed send should be treated by the delivery loop."""

    TRANSIENT = "transient"
    UNREACHABLE = "unreachable"


class TransportError(ReelError):
    """Chat transport failed to deliver a message."""

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.TRANSIENT,
        recipient_id: int | None = None,
        details: dict | None = None,
    ):
        self.kind = kind
        self.recipient_id = recipient_id
        super().__init__(message, details)

    @property
    def unreachable(self) -> bool:
        return self.kind is FailureKind.UNREACHABLE


class MediaError(ReelError):
    """Media server request failed (auth, missing item, HTTP status)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


# ━━━ Broadcast ━━━


class PipelineError(ReelError):
    """The broadcast could not start: the recipient set could not be read."""

    def __init__(
        self,
        message: str,
        content_id: str = "",
        details: dict | None = None,
    ):
        self.content_id = content_id
        super().__init__(message, details)


class BroadcastFailedError(ReelError):
    """Every broadcast attempt failed with a PipelineError."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        last_error: Exception | None = None,
        details: dict | None = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message, details)
