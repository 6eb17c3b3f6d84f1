"""Compliance modules for robots.txt, sitemaps, and dispatch rate limiting."""

from sponge.compliance.rate_limiter import RateLimiter
from sponge.compliance.robots_parser import (
    RobotsGate,
    RobotsParser,
    RobotsPolicy,
)
from sponge.compliance.sitemap_parser import Sitemap, SitemapParser

__all__ = [
    "RateLimiter",
    "RobotsGate",
    "RobotsParser",
    "RobotsPolicy",
    "Sitemap",
    "SitemapParser",
]
