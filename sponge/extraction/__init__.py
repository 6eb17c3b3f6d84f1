"""Link extraction and page content rendering."""

from sponge.extraction.content_renderer import ContentRenderer
from sponge.extraction.link_extractor import LinkExtractor, PaginationInfo

__all__ = [
    "ContentRenderer",
    "LinkExtractor",
    "PaginationInfo",
]
