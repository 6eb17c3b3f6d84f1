"""Utility modules for the Sponge crawler."""

from sponge.utils.logging import CrawlerLogger, get_logger, setup_logging
from sponge.utils.url_utils import (
    get_domain,
    get_origin,
    get_path,
    is_valid_url,
    resolve_url,
)

__all__ = [
    "CrawlerLogger",
    "get_domain",
    "get_logger",
    "get_origin",
    "get_path",
    "is_valid_url",
    "resolve_url",
    "setup_logging",
]
