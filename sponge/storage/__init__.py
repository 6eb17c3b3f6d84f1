"""Storage modules for downloaded documents, page content and reports."""

from sponge.storage.document_fetcher import DocumentFetcher
from sponge.storage.layout import PathBuilder
from sponge.storage.report import write_report

__all__ = [
    "DocumentFetcher",
    "PathBuilder",
    "write_report",
]
