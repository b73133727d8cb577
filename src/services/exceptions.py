# src/services/exceptions.py

"""Failure taxonomy for upstream proxy fetches."""


class ScrapeError(Exception):
    """Base class for every upstream fetch failure.

    ``attempts`` is filled in by the resilient fetcher once retries
    are exhausted, so callers can report how hard it tried.
    """

    retryable: bool = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.attempts: int = 0


class ConfigurationError(ScrapeError):
    """Proxy base address or credential is missing."""

    retryable = False


class UpstreamHTTPError(ScrapeError):
    """The proxy answered with a non-success status."""

    def __init__(self, status: int, excerpt: str) -> None:
        super().__init__(f"Proxy HTTP {status}: {excerpt}")
        self.status = status
        self.excerpt = excerpt


class EmptyDocumentError(ScrapeError):
    """The proxy succeeded but returned an empty or blocked shell."""

    def __init__(self, length: int, head: str = "") -> None:
        super().__init__(
            f"Proxy returned an empty or truncated document "
            f"(len={length})"
        )
        self.length = length
        self.head = head


class UpstreamTimeoutError(ScrapeError, TimeoutError):
    """The bounded wait elapsed before the proxy answered."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Proxy call timed out after {timeout:g}s")
        self.timeout = timeout


class UpstreamConnectionError(ScrapeError):
    """Transport-level failure that is not a timeout."""
