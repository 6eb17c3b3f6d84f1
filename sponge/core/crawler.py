"""
Crawl orchestrator for the Sponge crawler.

Owns the crawl session state machine, runs the bounded-concurrency
traversal loop, and keeps the registry of discovered documents that can
be downloaded on demand once traversal has finished.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

from sponge.compliance.rate_limiter import RateLimiter
from sponge.compliance.robots_parser import RobotsGate
from sponge.config import CrawlConfig
from sponge.core.content_filter import ContentFilter
from sponge.core.fetcher import Fetcher, FetcherConfig
from sponge.core.frontier import UrlFrontier
from sponge.exceptions import (
    NetworkError,
    RobotsDisallowedError,
    SessionStateError,
    SetupError,
    SkipError,
)
from sponge.extraction.link_extractor import LinkExtractor
from sponge.models import (
    CrawlErrorRecord,
    CrawlSession,
    CrawlStats,
    DiscoveredDocument,
    DownloadResult,
    FetchResult,
    FrontierEntry,
    SessionStatus,
    SkipReason,
)
from sponge.storage.document_fetcher import DocumentFetcher
from sponge.storage.report import write_report
from sponge.utils.logging import CrawlerLogger
from sponge.utils.url_utils import get_domain
from sponge.utils import metrics

# Consecutive dequeues without a new visited page before the loop gives up.
STAGNATION_LIMIT = 10
# Visited pages required before the total page estimate is computed.
ESTIMATE_AFTER_PAGES = 5
PROGRESS_EVERY = 10

REPORT_FILENAME = "crawl_report.json"


class CrawlOrchestrator:
    """
    Main crawl orchestrator.

    Coordinates the frontier, robots gate, content filter, rate gate and
    fetcher to walk a site, registering documents as they are found.
    Documents are only downloaded when download_document() or
    download_documents() is called.
    """

    def __init__(
        self,
        config: CrawlConfig,
        client: httpx.AsyncClient | None = None,
        logger: CrawlerLogger | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Crawl session request. Validated here.
            client: Optional pre-built HTTP client shared by all requests.
            logger: Logger instance.

        Raises:
            ConfigurationError: If the config is invalid.
        """
        config.validate()
        self.config = config
        self.logger = logger or CrawlerLogger("crawler")

        self.session = CrawlSession(config=config)
        self.logger = self.logger.bind(session_id=self.session.id)
        self.stats = CrawlStats()

        self.frontier = UrlFrontier()
        self.content_filter = ContentFilter.from_config(config)
        self.fetcher = Fetcher(FetcherConfig.from_crawl_config(config), client=client, logger=self.logger)
        self.rate_limiter = RateLimiter(config.delay, config.random_delay, logger=self.logger)
        self.robots = RobotsGate(
            self.fetcher,
            user_agent=config.user_agent,
            default_delay=config.delay,
            logger=self.logger,
        )
        self.link_extractor = LinkExtractor(logger=self.logger)
        self.document_fetcher = DocumentFetcher(
            config,
            self.fetcher,
            content_filter=self.content_filter,
            logger=self.logger,
        )

        self.documents: dict[str, DiscoveredDocument] = {}
        self.errors: list[CrawlErrorRecord] = []

        self._visited: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._abort_requested = False
        self._pagination_checked = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    async def crawl(self) -> dict[str, Any]:
        """
        Run the crawl session to completion, abort, or failure.

        Returns:
            The final status snapshot.

        Raises:
            SetupError: If the session could not be prepared. The session
                is marked failed first.
            SessionStateError: If this session has already been run.
            Exception: Anything unexpected escaping the traversal loop is
                re-raised after the session is marked failed.
        """
        if self.session.status != SessionStatus.PENDING:
            raise SessionStateError(
                self.session.id, self.session.status.value, SessionStatus.RUNNING.value
            )

        if self._abort_requested:
            self.session.transition(SessionStatus.ABORTED)
            return self.status_snapshot()

        try:
            await self._setup()
        except SetupError as e:
            self.logger.error("crawl_setup_failed", error=e.message)
            self.session.transition(SessionStatus.FAILED, error=e.message)
            raise

        self.session.transition(SessionStatus.RUNNING)
        self.logger.info(
            "crawl_started",
            start_url=self.config.start_url,
            max_depth=self.config.max_depth,
            max_pages=self.config.max_pages,
            output_dir=self.config.output_dir,
        )

        try:
            await self._run_loop()
        except Exception as e:
            message = str(e) or type(e).__name__
            self.logger.error("crawl_failed", error=message, error_type=type(e).__name__)
            self.session.transition(SessionStatus.FAILED, error=message)
            raise
        finally:
            await self._drain()
            self.stats.set_position(None, self.frontier.size())

        if self._abort_requested:
            self.session.transition(SessionStatus.ABORTED)
        else:
            self.session.transition(SessionStatus.COMPLETED)

        self.logger.info(
            "crawl_finished",
            status=self.session.status.value,
            duration_seconds=round(self.session.duration_seconds, 1),
            **{k: v for k, v in self.stats.snapshot().items() if k in CrawlStats.COUNTERS},
        )
        return self.status_snapshot()

    async def _setup(self) -> None:
        """Prepare the output directory, robots policy and seed."""
        try:
            Path(self.config.output_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Failed to create output directory: {e}")

        if self.config.respect_robots_txt:
            crawl_delay = await self.robots.crawl_delay(self.config.start_url)
            self.rate_limiter.set_crawl_delay(crawl_delay)

        self.frontier.enqueue(self.config.start_url, 0)

    def abort(self) -> None:
        """Request a cooperative stop. In-flight fetches are allowed to finish."""
        if self._abort_requested:
            return
        self._abort_requested = True
        self.stats.mark_aborted()
        self.logger.info("crawl_abort_requested")

    async def close(self) -> None:
        """Release the HTTP client."""
        await self.fetcher.stop()

    async def __aenter__(self) -> "CrawlOrchestrator":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Traversal loop
    # =========================================================================

    async def _run_loop(self) -> None:
        """Dequeue, gate and dispatch URLs until a stop condition holds."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.session_timeout_seconds
        semaphore = asyncio.Semaphore(self.config.concurrency)
        stalled = 0
        last_visited = 0

        while True:
            if self.frontier.is_empty():
                if not self._tasks:
                    break
                # frontier may refill once in-flight pages are parsed
                await asyncio.wait(set(self._tasks), return_when=asyncio.FIRST_COMPLETED)
                continue

            if self.stats.pages_visited >= self.config.max_pages:
                self.logger.info("page_budget_reached", max_pages=self.config.max_pages)
                break

            if self._abort_requested:
                break

            if loop.time() > deadline:
                self.logger.warning(
                    "session_timeout", timeout_seconds=self.config.session_timeout_seconds
                )
                break

            if self.stats.pages_visited == last_visited:
                stalled += 1
                if stalled > STAGNATION_LIMIT:
                    self.logger.warning("crawl_stagnated", iterations=stalled)
                    break
            else:
                stalled = 0
                last_visited = self.stats.pages_visited

            entry = self.frontier.dequeue()
            if entry is None:
                continue
            self.stats.set_position(entry.url, self.frontier.size())

            reason = await self._skip_reason(entry)
            if reason is not None:
                self.stats.record_skip(reason)
                metrics.record_skip(reason.value)
                self.logger.url_skipped(url=entry.url, reason=reason.value, depth=entry.depth)
                continue

            await semaphore.acquire()
            if self._abort_requested or self.stats.pages_visited >= self.config.max_pages:
                semaphore.release()
                break

            self._visited.add(entry.url)
            self.stats.increment("pages_visited")
            metrics.record_page_visited(get_domain(entry.url))

            task = asyncio.create_task(self._process(entry, semaphore))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _drain(self) -> None:
        """Wait for in-flight workers."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _skip_reason(self, entry: FrontierEntry) -> SkipReason | None:
        """Decide whether a dequeued URL should be passed over."""
        if entry.url in self._visited:
            return SkipReason.VISITED
        if entry.depth > self.config.max_depth:
            return SkipReason.DEPTH
        if not self.content_filter.should_crawl(entry.url):
            return SkipReason.FILTERED
        if self.config.respect_robots_txt:
            try:
                await self.robots.require_allowed(entry.url)
            except RobotsDisallowedError:
                return SkipReason.ROBOTS
        return None

    # =========================================================================
    # Worker
    # =========================================================================

    async def _process(self, entry: FrontierEntry, semaphore: asyncio.Semaphore) -> None:
        """Fetch one URL and act on what it turned out to be."""
        url = entry.url
        try:
            await self.rate_limiter.acquire()
            result = await self.fetcher.fetch_page(url)
            classification = self.content_filter.classify(url, result.content_type)

            if classification.is_html and result.html is not None:
                await self._handle_html(entry, result)
            elif classification.is_document:
                self._register_document(
                    url,
                    source_url=url,
                    depth=entry.depth,
                    content_type=result.content_type,
                    size=result.content_length,
                )
            else:
                self.logger.debug("resource_ignored", url=url, content_type=result.content_type)

        except NetworkError as e:
            self._record_error(url, e)
        except SkipError as e:
            self.logger.url_skipped(url=url, reason=e.reason)
        except Exception as e:
            self._record_error(url, e)
        finally:
            semaphore.release()
            visited = self.stats.pages_visited
            if visited % PROGRESS_EVERY == 0:
                self.logger.crawl_progress(
                    pages_visited=visited,
                    queue_size=self.frontier.size(),
                    documents_found=self.stats.documents_found,
                    errors=self.stats.errors,
                )

    async def _handle_html(self, entry: FrontierEntry, result: FetchResult) -> None:
        """Save content, detect pagination, and classify every link on a page."""
        url = entry.url
        depth = entry.depth
        html = result.html or ""
        within_budget = depth < self.config.max_depth

        if self.config.save_page_content:
            saved = await self.document_fetcher.save_page_content(
                url, html, {"source_url": url, "depth": depth}
            )
            if not saved.success and not saved.skipped:
                self.logger.warning("page_content_not_saved", url=url, reason=saved.reason)

        soup = self.link_extractor.parse(html)
        links = self.link_extractor.extract_links(soup, result.final_url)

        if depth == 0 and not self._pagination_checked:
            self._pagination_checked = True
            info = self.link_extractor.detect_pagination(links, result.final_url)
            if info.detected:
                self.stats.set_pagination(info.total_pages)
                self.logger.pagination_detected(url=url, total_pages=info.total_pages)
                if within_budget:
                    for page_url in info.page_urls:
                        if page_url not in self._visited:
                            self.frontier.enqueue(page_url, depth + 1)

        if (
            self.stats.pagination_detected
            and self.stats.pages_visited >= ESTIMATE_AFTER_PAGES
            and self.stats.estimated_total_pages == 0
        ):
            self._estimate_total_pages(links)

        for link in links:
            if not self.content_filter.should_crawl(link):
                continue
            if self.content_filter.is_document(link):
                self._register_document(link, source_url=url, depth=depth)
            elif within_budget and link not in self._visited:
                self.frontier.enqueue(link, depth + 1)

        for resource in self.link_extractor.extract_embedded(soup, result.final_url):
            if self.content_filter.is_document(resource):
                self._register_document(resource, source_url=url, depth=depth)

    def _estimate_total_pages(self, links: list[str]) -> None:
        """Project the total page count once pagination has been seen."""
        content_pages = {
            link
            for link in links
            if self.content_filter.should_follow(link)
            and not self.content_filter.is_pagination_url(link)
        }
        visited = self.stats.pages_visited
        estimated = min(len(content_pages) + self.frontier.size() + visited, self.config.max_pages)
        if estimated > visited:
            self.stats.set_estimated_total(estimated)
            self.logger.info("total_pages_estimated", estimated_total_pages=estimated)

    def _register_document(
        self,
        url: str,
        source_url: str,
        depth: int,
        content_type: str | None = None,
        size: int | None = None,
    ) -> bool:
        """Add a document to the registry. Returns False if already known."""
        if url in self.documents:
            return False

        self.documents[url] = DiscoveredDocument(
            url=url,
            source_url=source_url,
            depth=depth,
            content_type=content_type,
            size=size,
        )
        self.stats.increment("documents_found")
        metrics.record_document(get_domain(url))
        self.logger.document_found(url=url, source_url=source_url, depth=depth)
        return True

    def _record_error(self, url: str, error: Exception | str) -> None:
        """Count a per-URL failure without stopping the session."""
        if isinstance(error, str):
            message, error_type = error, "DownloadError"
        else:
            message = getattr(error, "message", None) or str(error) or type(error).__name__
            error_type = type(error).__name__
        self.stats.increment("errors")
        self.errors.append(CrawlErrorRecord(url=url, error=message))
        metrics.record_error(get_domain(url), error_type)
        self.logger.fetch_error(url=url, error=message, error_type=error_type)

    # =========================================================================
    # Document retrieval
    # =========================================================================

    def _download_metadata(self, doc: DiscoveredDocument) -> dict[str, Any]:
        return {
            "content_type": doc.content_type,
            "size": doc.size,
            "source_url": doc.source_url,
            "depth": doc.depth,
        }

    def _apply_download(self, doc: DiscoveredDocument, result: DownloadResult) -> None:
        """Record a download outcome on the registered document."""
        if result.success:
            doc.downloaded = True
            doc.file_path = result.path
            doc.size = result.size
            doc.downloaded_at = datetime.utcnow()
            doc.error = None
            doc.skipped = False
            doc.skip_reason = None
            self.stats.increment("documents_downloaded")
        elif result.skipped:
            doc.skipped = True
            doc.skip_reason = result.reason
        else:
            doc.error = result.error
            self._record_error(doc.url, result.error or "Download failed")

    async def download_document(self, url: str) -> DownloadResult:
        """
        Download one registered document.

        Works during and after traversal, including after an abort.

        Args:
            url: A URL from the document registry.

        Returns:
            The download outcome; unknown URLs fail without a request.
        """
        doc = self.documents.get(url)
        if doc is None:
            return DownloadResult.failure(url, "Document was not discovered in this session")

        result = await self.document_fetcher.download(url, self._download_metadata(doc))
        self._apply_download(doc, result)
        return result

    async def download_documents(self, urls: list[str] | None = None) -> list[DownloadResult]:
        """
        Download registered documents in batches.

        Args:
            urls: Documents to fetch; defaults to every document not yet
                downloaded. Unknown URLs are ignored.

        Returns:
            One result per document attempted.
        """
        if urls is None:
            targets = [u for u, d in self.documents.items() if not d.downloaded]
        else:
            targets = [u for u in urls if u in self.documents]

        metadata = {u: self._download_metadata(self.documents[u]) for u in targets}
        results = await self.document_fetcher.download_batch(targets, metadata)

        for result in results:
            self._apply_download(self.documents[result.url], result)

        self.logger.info(
            "documents_downloaded",
            attempted=len(results),
            downloaded=sum(1 for r in results if r.success),
            total_bytes=self.document_fetcher.stats.total_bytes,
        )
        return results

    # =========================================================================
    # Reporting
    # =========================================================================

    def status_snapshot(self) -> dict[str, Any]:
        """Live session status; safe to call from another thread."""
        snapshot = self.session.to_dict()
        snapshot["stats"] = self.stats.snapshot()
        snapshot["errors_count"] = len(self.errors)
        return snapshot

    def get_documents(self) -> list[DiscoveredDocument]:
        return list(self.documents.values())

    def export_metadata(self, path: str | Path | None = None) -> Path:
        """
        Write the JSON crawl report.

        Args:
            path: Destination; defaults to crawl_report.json in the output dir.

        Returns:
            The path written.
        """
        path = path or Path(self.config.output_dir) / REPORT_FILENAME
        written = write_report(
            path,
            self.status_snapshot(),
            [doc.to_dict() for doc in self.documents.values()],
            [err.to_dict() for err in self.errors],
        )
        self.logger.info("report_written", path=str(written))
        return written
