"""
Prometheus metrics for the Sponge crawler.

Provides instrumentation for monitoring crawl sessions and downloads.
"""

from prometheus_client import Counter, Histogram, Info

# =============================================================================
# Crawler Info
# =============================================================================

SPONGE_INFO = Info(
    "sponge",
    "Sponge crawler metadata",
)

# =============================================================================
# Traversal Metrics
# =============================================================================

PAGES_VISITED = Counter(
    "sponge_pages_visited_total",
    "Pages dispatched to a worker",
    ["domain"],
)

URLS_SKIPPED = Counter(
    "sponge_urls_skipped_total",
    "URLs passed over by the traversal loop",
    ["reason"],
)

FETCH_DURATION = Histogram(
    "sponge_fetch_duration_seconds",
    "Page fetch duration",
    ["domain"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

FETCH_ERRORS = Counter(
    "sponge_fetch_errors_total",
    "Fetch errors by type",
    ["error_type", "domain"],
)

# =============================================================================
# Document Metrics
# =============================================================================

DOCUMENTS_DISCOVERED = Counter(
    "sponge_documents_discovered_total",
    "Documents registered during traversal",
    ["domain"],
)

DOWNLOADS = Counter(
    "sponge_downloads_total",
    "Document downloads by outcome",
    ["outcome"],
)

DOWNLOADED_BYTES = Counter(
    "sponge_downloaded_bytes_total",
    "Bytes written to disk by document downloads",
)

# =============================================================================
# Estimation Metrics
# =============================================================================

ESTIMATIONS = Counter(
    "sponge_estimations_total",
    "Page estimations by confidence",
    ["confidence"],
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_page_visited(domain: str) -> None:
    PAGES_VISITED.labels(domain=domain).inc()


def record_skip(reason: str) -> None:
    URLS_SKIPPED.labels(reason=reason).inc()


def record_fetch(domain: str, duration_seconds: float) -> None:
    """Record a completed page fetch."""
    FETCH_DURATION.labels(domain=domain).observe(duration_seconds)


def record_error(domain: str, error_type: str) -> None:
    """Record a fetch error."""
    FETCH_ERRORS.labels(error_type=error_type, domain=domain).inc()


def record_document(domain: str) -> None:
    DOCUMENTS_DISCOVERED.labels(domain=domain).inc()


def record_download(success: bool, skipped: bool = False, size: int | None = None) -> None:
    """Record the outcome of a document download."""
    if skipped:
        outcome = "skipped"
    elif success:
        outcome = "success"
    else:
        outcome = "failure"
    DOWNLOADS.labels(outcome=outcome).inc()
    if success and size:
        DOWNLOADED_BYTES.inc(size)


def record_estimation(confidence: str) -> None:
    ESTIMATIONS.labels(confidence=confidence).inc()
