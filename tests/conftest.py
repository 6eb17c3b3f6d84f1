"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from sponge.config import CrawlConfig
from sponge.core.fetcher import Fetcher, FetcherConfig
from tests.helpers import BASE_URL, FakeSite, Routes


@pytest_asyncio.fixture
async def make_client() -> AsyncGenerator[Callable[[Routes], tuple[httpx.AsyncClient, FakeSite]], None]:
    """
    Factory for AsyncClients backed by a FakeSite.

    Clients are closed when the test finishes.
    """
    clients: list[httpx.AsyncClient] = []

    def factory(routes: Routes) -> tuple[httpx.AsyncClient, FakeSite]:
        site = FakeSite(routes)
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(site.handler),
            follow_redirects=True,
        )
        clients.append(client)
        return client, site

    yield factory

    for client in clients:
        await client.aclose()


@pytest.fixture
def make_fetcher(make_client: Any) -> Callable[[Routes], tuple[Fetcher, FakeSite]]:
    """Factory for Fetchers backed by a FakeSite."""

    def factory(routes: Routes) -> tuple[Fetcher, FakeSite]:
        client, site = make_client(routes)
        return Fetcher(FetcherConfig(timeout_seconds=5), client=client), site

    return factory


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., CrawlConfig]:
    """Factory for fast crawl configs writing under tmp_path."""

    def factory(**overrides: Any) -> CrawlConfig:
        values: dict[str, Any] = {
            "start_url": f"{BASE_URL}/",
            "output_dir": str(tmp_path / "out"),
            "delay": 0,
            "random_delay": False,
            "batch_pause": 0,
            "min_file_size": 0,
            "timeout_seconds": 5,
        }
        values.update(overrides)
        return CrawlConfig(**values)

    return factory


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_robots_txt_permissive() -> str:
    """Robots.txt that allows most crawling."""
    return """
User-agent: *
Allow: /
Crawl-delay: 1
Sitemap: https://example.com/sitemap.xml
    """.strip()


@pytest.fixture
def sample_robots_txt_restrictive() -> str:
    """Robots.txt that blocks most crawling."""
    return """
User-agent: *
Disallow: /

User-agent: Googlebot
Allow: /
    """.strip()
