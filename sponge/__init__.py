"""
Sponge

A polite site crawler that discovers and downloads documents, with
robots.txt compliance, rate limiting, pagination detection and pre-crawl
page estimation.
"""

__version__ = "0.1.0"

from sponge.config import CrawlConfig, EstimationConfig, SpongeSettings, load_config
from sponge.exceptions import SpongeError
from sponge.models import (
    CrawlSession,
    CrawlStats,
    DiscoveredDocument,
    DownloadResult,
    EstimationResult,
    SessionStatus,
)
from sponge.core import CrawlOrchestrator, PageEstimator

__all__ = [
    "CrawlConfig",
    "CrawlOrchestrator",
    "CrawlSession",
    "CrawlStats",
    "DiscoveredDocument",
    "DownloadResult",
    "EstimationConfig",
    "EstimationResult",
    "PageEstimator",
    "SessionStatus",
    "SpongeError",
    "SpongeSettings",
    "load_config",
]
