"""
Core data models for the Sponge crawler.

These models are used throughout the codebase for type safety and serialization.
"""

import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sponge.config import CrawlConfig
from sponge.exceptions import SessionStateError


# =============================================================================
# Enums
# =============================================================================


class SessionStatus(str, Enum):
    """Lifecycle of a crawl session."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.ABORTED)


# Forward-only transitions; terminal states have no outgoing edges.
_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset(
        [SessionStatus.RUNNING, SessionStatus.FAILED, SessionStatus.ABORTED]
    ),
    SessionStatus.RUNNING: frozenset(
        [SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.ABORTED]
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
    SessionStatus.ABORTED: frozenset(),
}


class Confidence(str, Enum):
    """Confidence level of a page estimate."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    ERROR = "error"


class ResourceKind(str, Enum):
    """What a fetched or discovered URL turned out to be."""

    HTML_PAGE = "html_page"
    DOCUMENT = "document"
    UNKNOWN = "unknown"


class SkipReason(str, Enum):
    """Why the traversal loop passed over a dequeued URL."""

    VISITED = "visited"
    DEPTH = "depth"
    FILTERED = "filtered"
    ROBOTS = "robots"


# =============================================================================
# Frontier Models
# =============================================================================


@dataclass(frozen=True)
class FrontierEntry:
    """A URL waiting in the frontier."""

    url: str
    depth: int
    priority: float = 0
    enqueued_at: float = field(default_factory=time.time)


# =============================================================================
# Classification
# =============================================================================


@dataclass(frozen=True)
class Classification:
    """Tagged result of classifying a URL/content type pair."""

    kind: ResourceKind
    extension: str | None = None

    @classmethod
    def html_page(cls) -> "Classification":
        return cls(kind=ResourceKind.HTML_PAGE)

    @classmethod
    def document(cls, extension: str) -> "Classification":
        return cls(kind=ResourceKind.DOCUMENT, extension=extension)

    @classmethod
    def unknown(cls) -> "Classification":
        return cls(kind=ResourceKind.UNKNOWN)

    @property
    def is_html(self) -> bool:
        return self.kind == ResourceKind.HTML_PAGE

    @property
    def is_document(self) -> bool:
        return self.kind == ResourceKind.DOCUMENT


# =============================================================================
# Fetch Models
# =============================================================================


@dataclass
class FetchResult:
    """Result of fetching a page during traversal."""

    url: str
    final_url: str
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    content_type: str = ""
    content_length: int | None = None
    html: str | None = None
    duration_ms: float = 0.0
    fetched_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ResourceInfo:
    """Metadata from a HEAD probe. Every field may be unknown."""

    size: int | None = None
    content_type: str | None = None
    last_modified: str | None = None
    etag: str | None = None


# =============================================================================
# Session Models
# =============================================================================


@dataclass
class CrawlSession:
    """A single crawl run and its lifecycle status."""

    config: CrawlConfig
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: SessionStatus = SessionStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None

    def transition(self, new_status: SessionStatus, error: str | None = None) -> None:
        """
        Move the session forward.

        Raises:
            SessionStateError: If the move is not allowed from the current status.
        """
        if new_status not in _TRANSITIONS[self.status]:
            raise SessionStateError(self.id, self.status.value, new_status.value)

        self.status = new_status
        if new_status == SessionStatus.RUNNING:
            self.start_time = datetime.utcnow()
        if new_status.is_terminal:
            self.start_time = self.start_time or datetime.utcnow()
            self.end_time = datetime.utcnow()
            self.error = error

    @property
    def duration_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        return ((self.end_time or datetime.utcnow()) - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "error": self.error,
        }


class CrawlStats:
    """
    Live counters for a crawl session.

    Workers update through the mutators; status pollers (possibly on another
    thread) read a consistent copy through snapshot().
    """

    COUNTERS = ("pages_visited", "documents_found", "documents_downloaded", "errors")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.pages_visited = 0
        self.documents_found = 0
        self.documents_downloaded = 0
        self.errors = 0
        self.queue_size = 0
        self.current_url: str | None = None
        self.total_pages_discovered = 0
        self.pagination_detected = False
        self.estimated_total_pages = 0
        self.aborted = False
        self.skipped: dict[str, int] = {reason.value: 0 for reason in SkipReason}

    def increment(self, counter: str, amount: int = 1) -> int:
        """Increase a monotonic counter and return the new value."""
        if counter not in self.COUNTERS:
            raise KeyError(counter)
        with self._lock:
            value = getattr(self, counter) + amount
            setattr(self, counter, value)
            return value

    def record_skip(self, reason: SkipReason) -> None:
        with self._lock:
            self.skipped[reason.value] += 1

    def set_position(self, current_url: str | None, queue_size: int) -> None:
        """Update the point-in-time fields."""
        with self._lock:
            self.current_url = current_url
            self.queue_size = queue_size

    def set_pagination(self, total_pages: int) -> None:
        with self._lock:
            self.pagination_detected = True
            self.total_pages_discovered = max(self.total_pages_discovered, total_pages)

    def set_estimated_total(self, estimated: int) -> None:
        with self._lock:
            self.estimated_total_pages = max(self.estimated_total_pages, estimated)

    def mark_aborted(self) -> None:
        with self._lock:
            self.aborted = True

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of all counters."""
        with self._lock:
            return {
                "pages_visited": self.pages_visited,
                "documents_found": self.documents_found,
                "documents_downloaded": self.documents_downloaded,
                "queue_size": self.queue_size,
                "current_url": self.current_url,
                "errors": self.errors,
                "total_pages_discovered": self.total_pages_discovered,
                "pagination_detected": self.pagination_detected,
                "estimated_total_pages": self.estimated_total_pages,
                "aborted": self.aborted,
                "skipped": dict(self.skipped),
            }


@dataclass
class CrawlErrorRecord:
    """A per-URL failure recorded during a session."""

    url: str
    error: str
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "error": self.error, "timestamp": self.timestamp.isoformat()}


# =============================================================================
# Document Models
# =============================================================================


@dataclass
class DiscoveredDocument:
    """A document found during traversal, downloaded on request."""

    url: str
    source_url: str
    depth: int
    content_type: str | None = None
    size: int | None = None
    downloaded: bool = False
    file_path: str | None = None
    error: str | None = None
    skipped: bool = False
    skip_reason: str | None = None
    downloaded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["downloaded_at"] = self.downloaded_at.isoformat() if self.downloaded_at else None
        return data


@dataclass
class DownloadResult:
    """Outcome of downloading a single document."""

    url: str
    success: bool
    skipped: bool = False
    reason: str | None = None
    path: str | None = None
    size: int | None = None
    error: str | None = None

    @classmethod
    def skip(cls, url: str, reason: str) -> "DownloadResult":
        return cls(url=url, success=False, skipped=True, reason=reason)

    @classmethod
    def failure(cls, url: str, error: str) -> "DownloadResult":
        return cls(url=url, success=False, error=error)


@dataclass
class PageContentResult:
    """Outcome of saving extracted page content."""

    url: str
    success: bool
    format: str
    skipped: bool = False
    reason: str | None = None
    path: str | None = None
    size: int | None = None


# =============================================================================
# Estimation Models
# =============================================================================


@dataclass(frozen=True)
class EstimationResult:
    """Pre-crawl estimate of how many pages a site has."""

    estimated_total: int
    discovered_urls: int
    pagination_detected: bool
    sitemap_found: bool
    confidence: Confidence
    patterns: tuple[str, ...] = ()
    sample_urls: tuple[str, ...] = ()
    error: str | None = None

    @classmethod
    def fallback(cls, url: str, error: str) -> "EstimationResult":
        """Conservative result used when estimation fails."""
        return cls(
            estimated_total=1,
            discovered_urls=1,
            pagination_detected=False,
            sitemap_found=False,
            confidence=Confidence.ERROR,
            sample_urls=(url,),
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimated_total": self.estimated_total,
            "discovered_urls": self.discovered_urls,
            "pagination_detected": self.pagination_detected,
            "sitemap_found": self.sitemap_found,
            "confidence": self.confidence.value,
            "patterns": list(self.patterns),
            "sample_urls": list(self.sample_urls),
            "error": self.error,
        }
