"""
Exception hierarchy for the Sponge crawler.

All exceptions inherit from SpongeError to allow catching all crawler-related errors.
Skip-type errors (robots, filter, size, existing file) describe why a URL was
passed over; they are never counted as crawl errors.
"""

from datetime import datetime
from typing import Any


class SpongeError(Exception):
    """Base exception for all crawler errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.utcnow()


# =============================================================================
# Configuration / Setup Errors
# =============================================================================


class ConfigurationError(SpongeError):
    """Crawl configuration failed validation."""

    def __init__(self, errors: list[str]):
        super().__init__(
            "Configuration validation failed:\n" + "\n".join(errors),
            {"errors": errors},
        )
        self.errors = errors


class SetupError(SpongeError):
    """Session setup failed (e.g. output directory cannot be created)."""

    pass


class SessionStateError(SpongeError):
    """Illegal crawl session status transition."""

    def __init__(self, session_id: str, current: str, requested: str):
        super().__init__(
            f"Session {session_id} cannot move from {current} to {requested}",
            {"session_id": session_id, "current": current, "requested": requested},
        )
        self.session_id = session_id
        self.current = current
        self.requested = requested


# =============================================================================
# Skip Reasons
# =============================================================================


class SkipError(SpongeError):
    """A URL was skipped. Not counted as a crawl error."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Skipped {url}: {reason}", {"url": url, "reason": reason})
        self.url = url
        self.reason = reason


class InvalidUrlError(SkipError):
    """URL is malformed."""

    def __init__(self, url: str):
        super().__init__(url, "Invalid URL")


class RobotsDisallowedError(SkipError):
    """URL is disallowed by robots.txt."""

    def __init__(self, url: str, user_agent: str):
        super().__init__(url, "Blocked by robots.txt")
        self.user_agent = user_agent


class FilterRejectedError(SkipError):
    """URL rejected by the content filter."""

    def __init__(self, url: str):
        super().__init__(url, "Filtered out")


class SizeOutOfBoundsError(SkipError):
    """Resource size is outside the configured limits."""

    def __init__(self, url: str, size: int | None, min_size: int, max_size: int):
        super().__init__(url, "File size out of range")
        self.size = size
        self.min_size = min_size
        self.max_size = max_size


class AlreadyExistsError(SkipError):
    """Destination file already exists and overwrite is disabled."""

    def __init__(self, url: str, path: str):
        super().__init__(url, "File already exists")
        self.path = path


# =============================================================================
# Fetch Errors
# =============================================================================


class NetworkError(SpongeError):
    """HTTP fetch failed (timeout, DNS, connection, bad status)."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(
            f"Fetch failed for {url}: {message}",
            {"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class RequestTimeoutError(NetworkError):
    """Request timed out."""

    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(url, f"Timeout after {timeout_seconds}s")
        self.timeout_seconds = timeout_seconds


class HttpStatusError(NetworkError):
    """Server answered with an error status."""

    def __init__(self, url: str, status_code: int, reason: str = ""):
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(url, message, status_code=status_code)


class ContentTooLargeError(NetworkError):
    """Content exceeds size limit."""

    def __init__(self, url: str, content_length: int, max_size: int):
        super().__init__(
            url,
            f"Content too large: {content_length} > {max_size}",
        )
        self.content_length = content_length
        self.max_size = max_size


# =============================================================================
# Storage Errors
# =============================================================================


class DownloadError(SpongeError):
    """Streaming a resource to disk failed. Partial output has been removed."""

    def __init__(self, url: str, message: str, path: str | None = None):
        super().__init__(
            f"Download failed for {url}: {message}",
            {"url": url, "path": path},
        )
        self.url = url
        self.path = path


class EstimationError(SpongeError):
    """Page estimation failed. Caught inside the estimator."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Estimation failed for {url}: {message}", {"url": url})
        self.url = url
