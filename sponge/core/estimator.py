"""
Pre-crawl page count estimation.

A best-effort heuristic: sitemap counts first, then a small sample crawl
combined with pagination hints on the seed page. Estimation never raises;
any failure produces a conservative fallback result.
"""

import asyncio
import re
from typing import Any

from bs4 import BeautifulSoup

from sponge.compliance.robots_parser import RobotsGate
from sponge.compliance.sitemap_parser import SitemapParser
from sponge.config import EstimationConfig
from sponge.core.fetcher import Fetcher, FetcherConfig
from sponge.exceptions import EstimationError, NetworkError, SkipError, SpongeError
from sponge.extraction.link_extractor import LinkExtractor
from sponge.models import Confidence, EstimationResult
from sponge.utils.logging import CrawlerLogger
from sponge.utils.url_utils import get_domain, get_origin, is_valid_url
from sponge.utils import metrics

SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")
MAX_INDEX_CHILDREN = 10
LINKS_PER_SAMPLE_PAGE = 5
MAX_SAMPLE_URLS_REPORTED = 20

PAGINATION_SELECTORS = (
    'a[href*="page="]',
    'a[href*="p="]',
    'a[href*="/page/"]',
    ".pagination a",
    ".pager a",
    ".page-numbers a",
    'nav a[href*="page"]',
)

TOTAL_INDICATOR_SELECTORS = (
    'span:-soup-contains("of")',
    ".total-pages",
    "[data-total-pages]",
)

_HREF_PAGE = re.compile(r"page[=/](\d+)", re.IGNORECASE)
_HREF_P = re.compile(r"p=(\d+)", re.IGNORECASE)
_TOTAL_OF = re.compile(r"of\s+(\d+)", re.IGNORECASE)
_TOTAL_N = re.compile(r"(\d+)\s+total", re.IGNORECASE)


def scale_discovered(discovered: int) -> int:
    """Extrapolate a sample count to a site size."""
    if discovered < 10:
        return discovered
    if discovered < 50:
        return int(discovered * 1.5)
    return discovered * 2


class PageEstimator:
    """
    Estimates how many pages a site has before crawling it.

    Pipeline:
    1. Sitemap discovery (sitemap.xml, sitemap_index.xml, robots.txt)
    2. Bounded sample crawl of same-host links
    3. Pagination analysis of the seed page
    4. Combination into an EstimationResult with a confidence level
    """

    def __init__(
        self,
        config: EstimationConfig,
        fetcher: Fetcher | None = None,
        logger: CrawlerLogger | None = None,
    ):
        """
        Initialize the estimator.

        Args:
            config: Estimation request.
            fetcher: HTTP collaborator (one is created if None).
            logger: Logger instance.
        """
        self.config = config
        self.logger = logger or CrawlerLogger("estimator")
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(
            FetcherConfig(
                user_agent=config.user_agent,
                timeout_seconds=config.timeout_seconds,
            ),
            logger=self.logger,
        )
        self.sitemap_parser = SitemapParser(logger=self.logger)
        self.robots = RobotsGate(self.fetcher, user_agent=config.user_agent, logger=self.logger)
        self.link_extractor = LinkExtractor(logger=self.logger)

        self._visited: set[str] = set()
        self._discovered: dict[str, None] = {}
        self._patterns: list[str] = []
        self._seed_html: str | None = None

    async def estimate(self) -> EstimationResult:
        """
        Run the estimation pipeline.

        Returns:
            The estimate, or a fallback result with confidence ``error``.
        """
        url = self.config.url
        self.logger.info("estimation_start", url=url)

        try:
            if self.config.max_duration_seconds:
                result = await asyncio.wait_for(
                    self._estimate(url), timeout=self.config.max_duration_seconds
                )
            else:
                result = await self._estimate(url)
        except asyncio.TimeoutError:
            self.logger.warning("estimation_timeout", url=url)
            result = EstimationResult.fallback(url, "Estimation timed out")
        except SpongeError as e:
            self.logger.error("estimation_failed", url=url, error=e.message)
            result = EstimationResult.fallback(url, e.message)
        except Exception as e:
            self.logger.error("estimation_failed", url=url, error=str(e), error_type=type(e).__name__)
            result = EstimationResult.fallback(url, str(e))
        finally:
            if self._owns_fetcher:
                await self.fetcher.stop()

        metrics.record_estimation(result.confidence.value)
        self.logger.info(
            "estimation_complete",
            url=url,
            estimated_total=result.estimated_total,
            confidence=result.confidence.value,
        )
        return result

    async def _estimate(self, url: str) -> EstimationResult:
        if not is_valid_url(url):
            raise EstimationError(url, "Invalid URL")

        sitemap_count = await self.check_sitemap(url)
        if sitemap_count > 0:
            return EstimationResult(
                estimated_total=sitemap_count,
                discovered_urls=sitemap_count,
                pagination_detected=False,
                sitemap_found=True,
                confidence=Confidence.HIGH,
            )

        await self.sample_crawl(url, 0)
        discovered = len(self._discovered)
        sample_urls = tuple(list(self._discovered)[:MAX_SAMPLE_URLS_REPORTED])

        pagination_max = await self.analyze_pagination(url)
        if pagination_max > 0:
            return EstimationResult(
                estimated_total=max(discovered, pagination_max),
                discovered_urls=discovered,
                pagination_detected=True,
                sitemap_found=False,
                confidence=Confidence.MEDIUM,
                patterns=tuple(self._patterns),
                sample_urls=sample_urls,
            )

        estimated = scale_discovered(discovered)
        return EstimationResult(
            estimated_total=estimated,
            discovered_urls=discovered,
            pagination_detected=False,
            sitemap_found=False,
            confidence=Confidence.LOW if estimated > discovered else Confidence.MEDIUM,
            sample_urls=sample_urls,
        )

    # =========================================================================
    # Sitemaps
    # =========================================================================

    async def check_sitemap(self, url: str) -> int:
        """
        Count URLs listed in the site's sitemaps.

        Returns:
            The first nonzero count found, or 0.
        """
        origin = get_origin(url)
        visited: set[str] = set()

        for path in SITEMAP_PATHS:
            count = await self._count_sitemap(f"{origin}{path}", visited)
            if count > 0:
                self.logger.info("sitemap_found", url=f"{origin}{path}", pages=count)
                return count

        for sitemap_url in await self.robots.sitemaps(url):
            count = await self._count_sitemap(sitemap_url, visited)
            if count > 0:
                self.logger.info("sitemap_found", url=sitemap_url, pages=count)
                return count

        return 0

    async def _count_sitemap(self, url: str, visited: set[str]) -> int:
        """Count page URLs in a sitemap, recursing into sitemap indexes."""
        if url in visited:
            return 0
        visited.add(url)

        try:
            status_code, body = await self.fetcher.get_bytes(url)
        except (NetworkError, SkipError) as e:
            self.logger.debug("sitemap_unavailable", url=url, error=str(e))
            return 0

        sitemap = self.sitemap_parser.parse(body, url, status_code)
        if sitemap.error:
            self.logger.debug("sitemap_unusable", url=url, error=sitemap.error)
            return 0

        if sitemap.is_index:
            total = 0
            for child in sitemap.sitemaps[:MAX_INDEX_CHILDREN]:
                total += await self._count_sitemap(child, visited)
            return total

        return sitemap.url_count

    # =========================================================================
    # Sample crawl
    # =========================================================================

    async def sample_crawl(self, url: str, depth: int) -> None:
        """Depth-first sample of same-host pages, a few links per page."""
        if (
            depth >= self.config.max_depth
            or url in self._visited
            or len(self._visited) >= self.config.max_sample_pages
        ):
            return

        self._visited.add(url)

        html = await self._fetch_html(url)
        if html is None:
            return
        if url == self.config.url:
            self._seed_html = html

        host = get_domain(url)
        soup = self.link_extractor.parse(html)
        links = [
            link
            for link in self.link_extractor.extract_links(soup, url)
            if get_domain(link) == host
        ]
        for link in links:
            self._discovered.setdefault(link, None)

        for link in links[:LINKS_PER_SAMPLE_PAGE]:
            await self.sample_crawl(link, depth + 1)

    async def _fetch_html(self, url: str) -> str | None:
        try:
            result = await self.fetcher.fetch_page(url)
        except (NetworkError, SkipError) as e:
            self.logger.debug("sample_fetch_failed", url=url, error=str(e))
            return None
        return result.html

    # =========================================================================
    # Pagination
    # =========================================================================

    async def analyze_pagination(self, url: str) -> int:
        """
        Find the highest page number advertised on the seed page.

        Returns:
            The maximum page index, or 0 if none was found.
        """
        html = self._seed_html if self._seed_html is not None else await self._fetch_html(url)
        if not html:
            return 0

        soup = BeautifulSoup(html, "lxml")
        max_page = 0

        for selector in PAGINATION_SELECTORS:
            for anchor in soup.select(selector):
                href = anchor.get("href") or ""
                text = anchor.get_text(strip=True)

                match = _HREF_PAGE.search(href) or _HREF_P.search(href)
                if match and int(match.group(1)) > max_page:
                    max_page = int(match.group(1))
                    self._patterns.append(f"URL pattern: {href}")

                if text.isdecimal() and int(text) > max_page:
                    max_page = int(text)
                    self._patterns.append(f'Text pattern: "{text}"')

        for selector in TOTAL_INDICATOR_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            total = self._indicator_total(element)
            if total > max_page:
                max_page = total
                self._patterns.append(f'Total indicator: "{element.get_text(strip=True)}"')

        return max_page

    @staticmethod
    def _indicator_total(element: Any) -> int:
        attr = element.get("data-total-pages")
        if attr and str(attr).strip().isdecimal():
            return int(str(attr).strip())
        text = element.get_text(" ", strip=True)
        match = _TOTAL_OF.search(text) or _TOTAL_N.search(text)
        return int(match.group(1)) if match else 0
