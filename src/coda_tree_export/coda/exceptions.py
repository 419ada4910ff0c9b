"""Coda client and export exceptions."""

from datetime import datetime


class CodaExportError(Exception):
    """Base exception for everything raised by this package."""

    pass


class ConfigurationError(CodaExportError):
    """Raised when no usable API token is configured.

    Fatal: an export aborts before any remote call is made.
    """

    pass


class CodaClientError(CodaExportError):
    """Base exception for Coda API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CodaAuthenticationError(CodaClientError):
    """Raised when the API rejects the token (401/403)."""

    pass


class CodaNotFoundError(CodaClientError):
    """Raised when a doc, page or export is not found (404)."""

    pass


class TransientRemoteError(CodaClientError):
    """Base class for errors worth retrying.

    Network failures, 5xx responses and rate limiting all land here.
    """

    pass


class CodaRateLimitError(TransientRemoteError):
    """Raised when the API answers 429 Too Many Requests."""

    def __init__(self, message: str, retry_at: datetime | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_at = retry_at


class RemoteJobFailure(CodaExportError):
    """Raised when an export job reports status ``failed``."""

    pass


class ExportTimeoutError(CodaExportError):
    """Raised when an export job does not complete within the poll budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Export timed out after {attempts} attempts")
        self.attempts = attempts


class QueueClearedError(CodaExportError):
    """Raised to callers whose operation was dropped by ``clear_queue``."""

    def __init__(self, category: str) -> None:
        super().__init__(f"Rate limiter queue cleared for category '{category}'")
        self.category = category
