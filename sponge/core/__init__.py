"""Core crawler modules."""

from sponge.core.frontier import UrlFrontier
from sponge.core.content_filter import ContentFilter, FilterPolicy
from sponge.core.fetcher import Fetcher, FetcherConfig
from sponge.core.estimator import PageEstimator
from sponge.core.crawler import CrawlOrchestrator

__all__ = [
    "ContentFilter",
    "CrawlOrchestrator",
    "Fetcher",
    "FetcherConfig",
    "FilterPolicy",
    "PageEstimator",
    "UrlFrontier",
]
