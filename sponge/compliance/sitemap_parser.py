"""
XML sitemap parser for the Sponge crawler.

Supports:
- Standard sitemap.xml files (urlset)
- Sitemap index files (sitemapindex) pointing at child sitemaps
- Gzip compressed sitemaps (.xml.gz)

References:
- https://www.sitemaps.org/protocol.html
"""

import gzip
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin
from xml.etree import ElementTree as ET

from sponge.utils.logging import CrawlerLogger


@dataclass
class Sitemap:
    """Parsed sitemap file."""

    url: str
    is_index: bool = False
    urls: list[str] = field(default_factory=list)
    sitemaps: list[str] = field(default_factory=list)  # children of an index
    fetch_status: int = 200
    error: str | None = None

    @property
    def url_count(self) -> int:
        """Return the number of page URLs in this sitemap."""
        return len(self.urls)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "url": self.url,
            "is_index": self.is_index,
            "urls": self.urls,
            "sitemaps": self.sitemaps,
            "fetch_status": self.fetch_status,
            "error": self.error,
        }


def _local_tag(elem: ET.Element) -> str:
    tag = elem.tag.lower() if isinstance(elem.tag, str) else ""
    if "}" in tag:
        tag = tag.split("}", 1)[1]
    return tag


class SitemapParser:
    """
    Parser for XML sitemap files.

    Handles both urlset sitemaps and sitemapindex files.
    """

    def __init__(self, logger: CrawlerLogger | None = None):
        self.logger = logger or CrawlerLogger("sitemap_parser")

    def parse(self, content: bytes | str, url: str, status_code: int = 200) -> Sitemap:
        """
        Parse sitemap content.

        Args:
            content: Raw sitemap content (bytes or string).
            url: URL this sitemap was fetched from.
            status_code: HTTP status code when fetching.

        Returns:
            Parsed Sitemap object. Problems are reported in ``error``.
        """
        sitemap = Sitemap(url=url, fetch_status=status_code)

        if status_code != 200:
            sitemap.error = f"HTTP {status_code}"
            return sitemap

        if isinstance(content, bytes):
            try:
                if content[:2] == b"\x1f\x8b":  # gzip magic number
                    content = gzip.decompress(content)
                content = content.decode("utf-8")
            except (OSError, EOFError, UnicodeDecodeError) as e:
                sitemap.error = f"Decode error: {e}"
                return sitemap

        try:
            root = ET.fromstring(content.strip())
        except ET.ParseError as e:
            sitemap.error = f"XML parse error: {e}"
            return sitemap

        root_tag = _local_tag(root)
        if root_tag == "sitemapindex":
            sitemap.is_index = True
            sitemap.sitemaps = self._collect_locs(root, "sitemap", url)
        elif root_tag == "urlset":
            sitemap.urls = self._collect_locs(root, "url", url)
        else:
            sitemap.error = f"Unknown root element: {root_tag}"

        return sitemap

    def _collect_locs(self, root: ET.Element, entry_tag: str, base_url: str) -> list[str]:
        """Collect the <loc> of every <url> or <sitemap> entry."""
        locs = []
        for elem in root.iter():
            if _local_tag(elem) != entry_tag:
                continue
            for child in elem:
                if _local_tag(child) == "loc" and child.text and child.text.strip():
                    locs.append(urljoin(base_url, child.text.strip()))
                    break
        return locs
