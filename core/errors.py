"""Error types raised across the ingest pipeline."""

from typing import Optional


class IngestError(Exception):
    """Base class for Mintwatch errors."""


class ConfigurationError(IngestError):
    """Required configuration is missing or invalid. Fatal at startup."""


class FeedConnectionError(IngestError):
    """The upstream feed socket closed or failed."""


class FetchError(IngestError):
    """Token metadata could not be resolved."""

    def __init__(self, message: str, uri: Optional[str] = None, retryable: bool = True):
        super().__init__(message)
        self.uri = uri
        self.retryable = retryable


class WriteError(IngestError):
    """
    The backend rejected or failed a write.

    `transient` separates timeouts and network failures (worth retrying)
    from permanent rejections such as constraint violations.
    """

    def __init__(self, message: str, procedure: str = "", transient: bool = False):
        super().__init__(message)
        self.message = message
        self.procedure = procedure
        self.transient = transient


class RetryExhaustedError(IngestError):
    """An operation kept failing until its attempt budget ran out."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
