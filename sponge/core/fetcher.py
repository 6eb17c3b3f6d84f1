"""
HTTP collaborator for the Sponge crawler.

Wraps an httpx AsyncClient and maps transport failures onto the crawler's
exception hierarchy. Page fetches stream the response and only read the
body for HTML; everything else is classified from the headers alone.
"""

import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx

from sponge.config import CrawlConfig
from sponge.exceptions import (
    ContentTooLargeError,
    HttpStatusError,
    InvalidUrlError,
    NetworkError,
    RequestTimeoutError,
)
from sponge.models import FetchResult, ResourceInfo
from sponge.utils.logging import CrawlerLogger
from sponge.utils.url_utils import get_domain
from sponge.utils import metrics

HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass
class FetcherConfig:
    """Configuration for the fetcher."""

    user_agent: str = "Sponge-Crawler/1.0"
    timeout_seconds: float = 30.0
    follow_redirects: bool = True
    max_redirects: int = 10
    max_page_size: int = 10 * 1024 * 1024  # 10MB
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_crawl_config(cls, config: CrawlConfig) -> "FetcherConfig":
        return cls(
            user_agent=config.user_agent,
            timeout_seconds=config.timeout_seconds,
            follow_redirects=config.follow_redirects,
            max_page_size=config.max_page_size,
            headers=dict(config.headers),
        )


def _parse_length(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class Fetcher:
    """
    HTTP fetcher used by traversal, robots, estimation and downloads.

    Every request carries the configured timeout; a timeout surfaces as
    RequestTimeoutError and any other transport failure as NetworkError.
    """

    def __init__(
        self,
        config: FetcherConfig | None = None,
        client: httpx.AsyncClient | None = None,
        logger: CrawlerLogger | None = None,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Fetcher configuration.
            client: Pre-built client (not closed by stop()).
            logger: Logger instance.
        """
        self.config = config or FetcherConfig()
        self.logger = logger or CrawlerLogger("fetcher")
        self._client = client
        self._owns_client = client is None

    async def start(self) -> None:
        """Initialize the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                follow_redirects=self.config.follow_redirects,
                max_redirects=self.config.max_redirects,
                headers={"User-Agent": self.config.user_agent, **self.config.headers},
            )
            self._owns_client = True

    async def stop(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.start()
        assert self._client is not None
        return self._client

    def _request_headers(self) -> dict[str, str]:
        return {"User-Agent": self.config.user_agent, **self.config.headers}

    @contextmanager
    def _translate_errors(self, url: str) -> Iterator[None]:
        """Map httpx failures onto NetworkError subclasses."""
        try:
            yield
        except httpx.TimeoutException:
            raise RequestTimeoutError(url, self.config.timeout_seconds)
        except httpx.TooManyRedirects:
            raise NetworkError(url, f"More than {self.config.max_redirects} redirects")
        except httpx.InvalidURL:
            raise InvalidUrlError(url)
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e) or type(e).__name__)

    # =========================================================================
    # Traversal
    # =========================================================================

    async def fetch_page(self, url: str) -> FetchResult:
        """
        Fetch a URL for traversal.

        Args:
            url: URL to fetch.

        Returns:
            FetchResult; ``html`` is set only for HTML responses.

        Raises:
            HttpStatusError: On a status >= 400.
            ContentTooLargeError: If an HTML body exceeds max_page_size.
            NetworkError: On any other transport failure.
        """
        domain = get_domain(url)
        start_time = time.monotonic()
        self.logger.fetch_start(url=url, domain=domain)

        async with self.stream(url) as response:
            if response.status_code >= 400:
                raise HttpStatusError(url, response.status_code, response.reason_phrase)

            content_type = response.headers.get("content-type", "")
            content_length = _parse_length(response.headers.get("content-length"))
            html = None

            if content_type.split(";")[0].strip().lower() in HTML_TYPES:
                if content_length is not None and content_length > self.config.max_page_size:
                    raise ContentTooLargeError(url, content_length, self.config.max_page_size)

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.config.max_page_size:
                        raise ContentTooLargeError(url, len(body), self.config.max_page_size)
                html = bytes(body).decode(response.charset_encoding or "utf-8", errors="replace")
                content_length = len(body)

        duration_ms = (time.monotonic() - start_time) * 1000
        metrics.record_fetch(domain, duration_ms / 1000)
        self.logger.fetch_success(
            url=url,
            status_code=response.status_code,
            duration_ms=duration_ms,
            content_type=content_type,
        )

        return FetchResult(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            headers=dict(response.headers),
            content_type=content_type,
            content_length=content_length,
            html=html,
            duration_ms=duration_ms,
        )

    # =========================================================================
    # Auxiliary requests
    # =========================================================================

    async def head(self, url: str) -> ResourceInfo | None:
        """
        Probe a resource with HEAD.

        Returns:
            ResourceInfo, or None if the probe failed for any reason.
        """
        client = await self._get_client()
        try:
            with self._translate_errors(url):
                response = await client.head(url, headers=self._request_headers())
        except (NetworkError, InvalidUrlError) as e:
            self.logger.debug("head_failed", url=url, error=str(e))
            return None

        if response.status_code >= 400:
            return None

        return ResourceInfo(
            size=_parse_length(response.headers.get("content-length")),
            content_type=response.headers.get("content-type"),
            last_modified=response.headers.get("last-modified"),
            etag=response.headers.get("etag"),
        )

    async def get_bytes(self, url: str) -> tuple[int, bytes]:
        """
        GET a small resource (robots.txt, sitemap) in full.

        Returns:
            Tuple of (status_code, body).

        Raises:
            NetworkError: On transport failure.
        """
        client = await self._get_client()
        with self._translate_errors(url):
            response = await client.get(url, headers=self._request_headers())
        return response.status_code, response.content

    async def get_text(self, url: str) -> tuple[int, str]:
        """GET a resource and decode it as text."""
        client = await self._get_client()
        with self._translate_errors(url):
            response = await client.get(url, headers=self._request_headers())
            return response.status_code, response.text

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming GET.

        Transport errors raised while the caller reads the body are
        translated as well.
        """
        client = await self._get_client()
        with self._translate_errors(url):
            async with client.stream("GET", url, headers=self._request_headers()) as response:
                yield response

    async def __aenter__(self) -> "Fetcher":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
