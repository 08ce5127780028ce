"""Error taxonomy for Reader Sync.

Every failure the sync core reports is a ``ReaderError``.  Authentication
rejections that survive the dispatcher's single retry surface as
``AuthFailure``; transport problems (including timeouts) as
``NetworkFailure``; other non-success HTTP answers as ``RemoteError``.
"""

from typing import Dict, List, Optional


class ReaderError(Exception):
    """Base class for all sync errors."""


class AuthFailure(ReaderError):
    """Credentials were rejected or could not be obtained."""


class NetworkFailure(ReaderError):
    """The transport failed before a response was received."""


class RemoteError(ReaderError):
    """The service answered with a non-success status."""

    def __init__(self, status: int, body: str = "", message: Optional[str] = None):
        self.status = status
        self.body = (body or "")[:200]
        super().__init__(message or f"Remote error {status}: {self.body}")


class MalformedResponse(ReaderError):
    """The service answered with a body that could not be parsed."""


class SubscriptionError(ReaderError):
    """A subscribe, unsubscribe or folder change was rejected."""

    def __init__(self, feed_url: str, cause: BaseException):
        self.feed_url = feed_url
        self.cause = cause
        super().__init__(f"Subscription change failed for {feed_url}: {cause}")


class PartialRefreshFailure(ReaderError):
    """One or more feeds of a refresh batch failed.

    The batch itself is not failed; this object collects the per-feed
    errors so callers can inspect them after the batch completes.
    """

    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = dict(failures)
        super().__init__(
            f"{len(self.failures)} feed(s) failed to refresh: "
            + ", ".join(sorted(self.failures))
        )

    @property
    def feed_urls(self) -> List[str]:
        return sorted(self.failures)


def failure_category(error: BaseException) -> str:
    """Map an error to the short category written to activity logs."""
    if isinstance(error, AuthFailure):
        return "auth"
    if isinstance(error, NetworkFailure):
        return "network"
    if isinstance(error, MalformedResponse):
        return "malformed"
    if isinstance(error, RemoteError):
        return "remote"
    return "error"
