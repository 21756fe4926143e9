"""Domain exception hierarchy for the TermAI chat client."""

from __future__ import annotations


class TermAIError(RuntimeError):
    """Base class for all domain-level chat errors."""


class GatewayError(TermAIError):
    """Raised when the completion endpoint rejects or fails a request."""

    def __init__(
        self, message: str, *, status_code: int | None = None, body: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GatewayConnectionError(GatewayError):
    """Raised when the completion endpoint cannot be reached."""


class PersistenceError(TermAIError):
    """Base class for transcript persistence failures."""


class InvalidFormatError(PersistenceError):
    """Raised when a transcript path or file content is not acceptable."""


class PersistenceIOError(PersistenceError):
    """Raised when a transcript cannot be written or read from disk."""


class NotFoundError(TermAIError):
    """Raised when a named file or attachment does not exist."""


class TranscriptNotFoundError(InvalidFormatError, NotFoundError):
    """Raised when a transcript file to load does not exist."""


class InvalidStateError(TermAIError):
    """Raised when an internal invariant is violated."""


class UnknownCommandError(TermAIError):
    """Raised for slash commands missing from the command table."""


class CommandUsageError(TermAIError):
    """Raised when a slash command receives unusable arguments."""


class AttachmentError(TermAIError):
    """Raised when a single attachment cannot be processed."""


class ConfigValidationError(TermAIError):
    """Raised when configuration cannot be validated safely."""
