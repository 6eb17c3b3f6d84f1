"""
Document downloads and page content persistence.

Streams single resources to disk with partial-file cleanup and writes
rendered page content under the output directory.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sponge.config import CrawlConfig, PageContentFormat
from sponge.core.content_filter import ContentFilter
from sponge.core.fetcher import Fetcher
from sponge.exceptions import (
    AlreadyExistsError,
    DownloadError,
    FilterRejectedError,
    NetworkError,
    SizeOutOfBoundsError,
    SkipError,
)
from sponge.extraction.content_renderer import FILE_EXTENSIONS, ContentRenderer
from sponge.models import DownloadResult, PageContentResult, ResourceInfo
from sponge.storage.layout import PathBuilder
from sponge.utils.logging import CrawlerLogger
from sponge.utils.url_utils import get_domain
from sponge.utils import metrics

# Rendered pages shorter than this are not saved.
MIN_PAGE_CONTENT_LENGTH = 50
PARTIAL_SUFFIX = ".part"


@dataclass
class DownloadStats:
    """Counters for one DocumentFetcher."""

    attempted: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    total_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        success_rate = round(self.successful / self.attempted * 100) if self.attempted else 0
        return {
            "attempted": self.attempted,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "total_bytes": self.total_bytes,
            "total_mb": round(self.total_bytes / (1024 * 1024), 2),
            "success_rate": success_rate,
        }


class DocumentFetcher:
    """
    Downloads documents and saves page content.

    Features:
    - Filter, size and existing-file checks before any body is fetched
    - Best-effort HEAD probe for size and content type
    - Streaming writes bounded by max_file_size
    - Partial files removed on any failure
    - Batched bulk downloads with a pause between batches
    """

    def __init__(
        self,
        config: CrawlConfig,
        fetcher: Fetcher,
        content_filter: ContentFilter | None = None,
        renderer: ContentRenderer | None = None,
        logger: CrawlerLogger | None = None,
    ):
        """
        Initialize the document fetcher.

        Args:
            config: Session configuration.
            fetcher: HTTP collaborator.
            content_filter: Filter shared with the crawl session.
            renderer: Page content renderer.
            logger: Logger instance.
        """
        self.config = config
        self.fetcher = fetcher
        self.content_filter = content_filter or ContentFilter.from_config(config)
        self.renderer = renderer or ContentRenderer()
        self.logger = logger or CrawlerLogger("document_fetcher")
        self.paths = PathBuilder(config.output_dir, config.layout, self.content_filter)
        self.stats = DownloadStats()

    # =========================================================================
    # Documents
    # =========================================================================

    async def download(self, url: str, metadata: dict[str, Any] | None = None) -> DownloadResult:
        """
        Download one document.

        Skips and failures are reported in the result, never raised.

        Args:
            url: Document URL.
            metadata: Known facts about the document (content_type, size).

        Returns:
            DownloadResult describing the outcome.
        """
        metadata = metadata or {}
        self.stats.attempted += 1

        try:
            result = await self._download(url, metadata)
        except SkipError as e:
            self.stats.skipped += 1
            result = DownloadResult.skip(url, e.reason)
        except DownloadError as e:
            self.stats.failed += 1
            result = DownloadResult.failure(url, str(e))
        else:
            self.stats.successful += 1
            self.stats.total_bytes += result.size or 0

        self.logger.download_result(
            url=url,
            success=result.success,
            skipped=result.skipped,
            reason=result.reason,
            error=result.error,
            path=result.path,
            size=result.size,
        )
        metrics.record_download(result.success, result.skipped, result.size)
        return result

    async def _download(self, url: str, metadata: dict[str, Any]) -> DownloadResult:
        if not self._should_download(url, metadata):
            raise FilterRejectedError(url)

        info = await self.fetcher.head(url) or ResourceInfo()

        if not self.content_filter.is_file_size_allowed(info.size):
            raise SizeOutOfBoundsError(
                url, info.size, self.config.min_file_size, self.config.max_file_size
            )

        content_type = info.content_type or metadata.get("content_type")
        path = self.paths.document_path(url, content_type)

        if path.exists() and not self.config.overwrite_existing:
            raise AlreadyExistsError(url, str(path))

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(url, f"Cannot create directory: {e}", str(path))

        size = await self._stream_to_file(url, path)
        return DownloadResult(url=url, success=True, path=str(path), size=size)

    def _should_download(self, url: str, metadata: dict[str, Any]) -> bool:
        """Document classification plus domain policy."""
        if not self.content_filter.is_document(url, metadata.get("content_type")):
            return False
        host = get_domain(url)
        return bool(host) and self.content_filter.is_domain_allowed(host)

    async def _stream_to_file(self, url: str, path: Path) -> int:
        """
        Stream a body to a sibling ``.part`` file, then move it into place.

        An existing file at ``path`` is only replaced by a complete download.

        Raises:
            DownloadError: On any failure. The partial file has been removed.
        """
        partial = path.with_name(path.name + PARTIAL_SUFFIX)
        written = 0
        try:
            async with self.fetcher.stream(url) as response:
                if response.status_code != 200:
                    raise DownloadError(
                        url, f"HTTP {response.status_code}: {response.reason_phrase}", str(path)
                    )
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        written += len(chunk)
                        if written > self.config.max_file_size:
                            raise DownloadError(
                                url,
                                f"Body exceeds {self.config.max_file_size} bytes",
                                str(path),
                            )
                        fh.write(chunk)

            if written == 0:
                raise DownloadError(url, "Downloaded file is empty", str(path))

            partial.replace(path)

        except (DownloadError, NetworkError, SkipError, OSError) as e:
            self._remove_partial(partial)
            if isinstance(e, DownloadError):
                raise
            raise DownloadError(url, str(e), str(path)) from e
        except asyncio.CancelledError:
            self._remove_partial(partial)
            raise

        return written

    def _remove_partial(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning("partial_cleanup_failed", path=str(path), error=str(e))

    async def download_batch(
        self,
        urls: list[str],
        metadata_by_url: dict[str, dict[str, Any]] | None = None,
    ) -> list[DownloadResult]:
        """
        Download many documents, a fixed-size batch at a time.

        Individual failures never stop the batch.

        Args:
            urls: Document URLs.
            metadata_by_url: Per-URL metadata passed to download().

        Returns:
            One result per URL, in input order.
        """
        metadata_by_url = metadata_by_url or {}
        size = max(1, self.config.download_concurrency)
        results: list[DownloadResult] = []

        for start in range(0, len(urls), size):
            batch = urls[start:start + size]
            outcomes = await asyncio.gather(
                *(self.download(url, metadata_by_url.get(url)) for url in batch),
                return_exceptions=True,
            )
            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    self.stats.failed += 1
                    results.append(DownloadResult.failure(url, str(outcome)))
                else:
                    results.append(outcome)

            if start + size < len(urls) and self.config.batch_pause > 0:
                await asyncio.sleep(self.config.batch_pause)

        return results

    # =========================================================================
    # Page content
    # =========================================================================

    async def save_page_content(
        self,
        url: str,
        html: str,
        metadata: dict[str, Any] | None = None,
    ) -> PageContentResult:
        """
        Render and save a page's content.

        Args:
            url: Page URL.
            html: Page HTML.
            metadata: Context about the page (source_url, depth).

        Returns:
            PageContentResult describing the outcome.
        """
        fmt = PageContentFormat(self.config.page_content_format)
        content = self.renderer.render(html, fmt)

        if len(content) < MIN_PAGE_CONTENT_LENGTH:
            return PageContentResult(
                url=url,
                success=False,
                format=fmt.value,
                skipped=True,
                reason="No meaningful content found",
            )

        path = self.paths.page_path(url, FILE_EXTENSIONS[fmt])
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            self.logger.error("page_content_write_failed", url=url, path=str(path), error=str(e))
            return PageContentResult(url=url, success=False, format=fmt.value, reason=str(e))

        self.logger.debug("page_content_saved", url=url, path=str(path), chars=len(content))
        return PageContentResult(
            url=url,
            success=True,
            format=fmt.value,
            path=str(path),
            size=len(content),
        )

    def get_stats(self) -> dict[str, Any]:
        """Get download statistics."""
        return self.stats.to_dict()
