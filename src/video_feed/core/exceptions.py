"""Application-wide exception hierarchy for Video Feed.

All custom exceptions subclass ``VideoFeedError``, enabling consistent error
handling and structured logging across the application.

Hierarchy::

    VideoFeedError
    ├── ConfigurationError
    ├── SearchProviderError          (status_code, reason)
    ├── NoCredentialAvailableError
    │   └── CredentialsExhaustedError
    └── StorageError

None of these is fatal to the process: the ingestion loop logs and counts
them, and the read API maps them to HTTP status codes.
"""

from __future__ import annotations


class VideoFeedError(Exception):
    """Base class for all Video Feed exceptions."""


class ConfigurationError(VideoFeedError):
    """Raised at startup when required configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Provider exceptions
# ---------------------------------------------------------------------------


class SearchProviderError(VideoFeedError):
    """Raised when a call to the YouTube Data API fails for any reason.

    Quota exhaustion, other HTTP error statuses, transport errors, timeouts
    and undecodable bodies all surface as this one type.  The search client
    treats every instance as a signal that the credential used is exhausted.

    Args:
        message: Human-readable description of the failure.
        status_code: HTTP status code, or ``None`` for transport errors.
        reason: YouTube ``error.errors[0].reason`` value when available
            (e.g. ``"quotaExceeded"``).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


# ---------------------------------------------------------------------------
# Credential exceptions
# ---------------------------------------------------------------------------


class NoCredentialAvailableError(VideoFeedError):
    """Raised when the credential pool has no usable credential for a request.

    Args:
        message: Optional override for the default message.
    """

    def __init__(self, message: str = "No YouTube API credential available") -> None:
        super().__init__(message)


class CredentialsExhaustedError(NoCredentialAvailableError):
    """Raised when every configured API key has failed and is cooling down.

    Args:
        total: Number of configured credentials.
        topic: Topic whose fetch gave up, for logging.
    """

    def __init__(self, total: int, topic: str | None = None) -> None:
        msg = f"All {total} API keys exhausted"
        if topic:
            msg += f" while fetching topic '{topic}'"
        super().__init__(msg)
        self.total = total
        self.topic = topic


# ---------------------------------------------------------------------------
# Storage exceptions
# ---------------------------------------------------------------------------


class StorageError(VideoFeedError):
    """Raised when a read or write against the video store fails.

    Args:
        message: Description of the failed operation.
        external_id: Video ID involved, when the failure is item-specific.
    """

    def __init__(self, message: str, external_id: str | None = None) -> None:
        super().__init__(message)
        self.external_id = external_id
