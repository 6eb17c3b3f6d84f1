"""
Link extractor for URL discovery from HTML.

Extracts anchors, embedded resources and pagination links from pages.
"""

from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from sponge.utils.logging import CrawlerLogger
from sponge.utils.url_utils import (
    get_domain,
    get_path,
    get_query_param,
    resolve_url,
    set_query_param,
)

# Highest page number accepted from a ?page= link.
MAX_PAGINATION_PAGE = 100


@dataclass
class PaginationInfo:
    """Result of pagination detection on a listing page."""

    detected: bool = False
    total_pages: int = 0
    page_urls: list[str] = field(default_factory=list)


class LinkExtractor:
    """
    Extracts links from HTML content.

    Features:
    - Resolves anchors against the response's final URL
    - Finds embedded resources (images, frames, objects, document anchors)
    - Detects ?page=N pagination and fills in gaps between observed pages
    """

    # (selector, attribute) pairs that may point at a document
    EMBED_SELECTORS = (
        ("img[src]", "src"),
        ("iframe[src]", "src"),
        ("embed[src]", "src"),
        ("object[data]", "data"),
        ("source[src]", "src"),
        ('a[href$=".pdf"]', "href"),
        ('a[href$=".doc"]', "href"),
        ('a[href$=".docx"]', "href"),
        ('a[href$=".xls"]', "href"),
        ('a[href$=".xlsx"]', "href"),
    )

    def __init__(self, logger: CrawlerLogger | None = None):
        self.logger = logger or CrawlerLogger("link_extractor")

    @staticmethod
    def parse(html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "lxml")

    def extract_links(self, soup: BeautifulSoup, base_url: str) -> list[str]:
        """
        Extract anchor targets from a parsed page.

        Args:
            soup: Parsed HTML.
            base_url: Final URL of the response, used for resolution.

        Returns:
            Absolute URLs in document order, without duplicates.
        """
        seen: set[str] = set()
        links = []

        for anchor in soup.find_all("a", href=True):
            href = anchor.get("href", "").strip()
            if not href:
                continue
            absolute = resolve_url(base_url, href)
            if absolute and absolute not in seen:
                seen.add(absolute)
                links.append(absolute)

        return links

    def extract_embedded(self, soup: BeautifulSoup, base_url: str) -> list[str]:
        """Collect URLs referenced by embed-like elements."""
        seen: set[str] = set()
        urls = []

        for selector, attr in self.EMBED_SELECTORS:
            for elem in soup.select(selector):
                value = elem.get(attr)
                if not value:
                    continue
                absolute = resolve_url(base_url, value)
                if absolute and absolute not in seen:
                    seen.add(absolute)
                    urls.append(absolute)

        return urls

    def detect_pagination(self, links: list[str], current_url: str) -> PaginationInfo:
        """
        Detect ?page=N pagination among a page's links.

        Only links to the same host and path as ``current_url`` count.
        Two or more distinct page numbers mean pagination; when the
        observed range has gaps, the missing pages are generated from
        ``current_url``.

        Args:
            links: Absolute links found on the page.
            current_url: URL of the page being analysed.

        Returns:
            PaginationInfo with the highest page number seen and the
            URLs to enqueue.
        """
        host = get_domain(current_url)
        path = get_path(current_url)
        page_numbers: set[int] = set()
        page_urls: list[str] = []

        for link in links:
            try:
                if get_domain(link) != host or get_path(link) != path:
                    continue
                value = get_query_param(link, "page")
            except ValueError:
                continue

            if value is None or not value.isdecimal():
                continue

            page = int(value)
            if 0 < page <= MAX_PAGINATION_PAGE:
                page_numbers.add(page)
                page_urls.append(link)

        if len(page_numbers) < 2:
            return PaginationInfo()

        low, high = min(page_numbers), max(page_numbers)
        if high > low + 1:
            for page in range(low, high + 1):
                page_url = set_query_param(current_url, "page", str(page))
                if page_url not in page_urls:
                    page_urls.append(page_url)

        return PaginationInfo(detected=True, total_pages=high, page_urls=page_urls)
