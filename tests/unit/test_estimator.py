"""
Tests for pre-crawl page estimation.
"""

import asyncio
from typing import Any

import httpx
import pytest

from sponge.config import EstimationConfig
from sponge.core.estimator import PageEstimator, scale_discovered
from sponge.core.fetcher import Fetcher
from sponge.models import Confidence
from tests.helpers import BASE_URL, HTML, html_page, sitemap_index_xml, sitemap_xml

XML = "application/xml"


def make_estimator(fetcher: Any, url: str = f"{BASE_URL}/", **kwargs: Any) -> PageEstimator:
    return PageEstimator(EstimationConfig(url=url, **kwargs), fetcher=fetcher)


class TestScaling:
    """Tests for sample extrapolation."""

    @pytest.mark.parametrize(
        "discovered,expected",
        [(0, 0), (9, 9), (10, 15), (49, 73), (50, 100)],
    )
    def test_scale_discovered(self, discovered: int, expected: int) -> None:
        """Test the scaling bands."""
        assert scale_discovered(discovered) == expected


class TestSitemapEstimation:
    """Tests for sitemap-based estimates."""

    @pytest.mark.asyncio
    async def test_sitemap_of_fifty(self, make_fetcher: Any) -> None:
        """Test that a 50-URL sitemap gives a high-confidence estimate of 50."""
        urls = [f"{BASE_URL}/page/{i}" for i in range(50)]
        fetcher, _ = make_fetcher({"/sitemap.xml": (200, XML, sitemap_xml(urls))})

        result = await make_estimator(fetcher).estimate()

        assert result.estimated_total == 50
        assert result.confidence == Confidence.HIGH
        assert result.sitemap_found

    @pytest.mark.asyncio
    async def test_sitemap_index_with_cycle(self, make_fetcher: Any) -> None:
        """Test that index recursion sums children and survives cycles."""
        fetcher, _ = make_fetcher(
            {
                "/sitemap.xml": (404, "text/plain", ""),
                "/sitemap_index.xml": (
                    200,
                    XML,
                    sitemap_index_xml(
                        [
                            f"{BASE_URL}/s1.xml",
                            f"{BASE_URL}/s2.xml",
                            f"{BASE_URL}/sitemap_index.xml",
                        ]
                    ),
                ),
                "/s1.xml": (200, XML, sitemap_xml([f"{BASE_URL}/a{i}" for i in range(3)])),
                "/s2.xml": (200, XML, sitemap_xml([f"{BASE_URL}/b{i}" for i in range(4)])),
            }
        )

        result = await make_estimator(fetcher).estimate()

        assert result.estimated_total == 7
        assert result.confidence == Confidence.HIGH

    @pytest.mark.asyncio
    async def test_sitemap_from_robots(self, make_fetcher: Any) -> None:
        """Test sitemaps declared in robots.txt."""
        fetcher, _ = make_fetcher(
            {
                "/robots.txt": (200, "text/plain", f"User-agent: *\nSitemap: {BASE_URL}/maps/main.xml\n"),
                "/maps/main.xml": (200, XML, sitemap_xml([f"{BASE_URL}/x", f"{BASE_URL}/y"])),
            }
        )

        result = await make_estimator(fetcher).estimate()

        assert result.estimated_total == 2
        assert result.sitemap_found


class TestSampleEstimation:
    """Tests for sample crawl and pagination estimates."""

    @pytest.mark.asyncio
    async def test_pagination_one_to_five(self, make_fetcher: Any) -> None:
        """Test that ?page=1..5 yields a pagination estimate of at least 5."""
        pages = [f"?page={n}" for n in range(1, 6)]
        listing = html_page(*pages, title="Listing")
        fetcher, _ = make_fetcher({"/list": (200, HTML, listing)})

        result = await make_estimator(fetcher, url=f"{BASE_URL}/list").estimate()

        assert result.pagination_detected
        assert result.estimated_total >= 5
        assert result.confidence == Confidence.MEDIUM
        assert result.patterns

    @pytest.mark.asyncio
    async def test_total_indicator(self, make_fetcher: Any) -> None:
        """Test "Page 1 of N" indicators."""
        listing = html_page("/a", extra='<span class="info">Page 1 of 12</span>')
        fetcher, _ = make_fetcher({"/": (200, HTML, listing), "/a": (200, HTML, html_page())})

        result = await make_estimator(fetcher).estimate()

        assert result.pagination_detected
        assert result.estimated_total == 12

    @pytest.mark.asyncio
    async def test_small_site_not_inflated(self, make_fetcher: Any) -> None:
        """Test that fewer than 10 discovered URLs are reported as-is."""
        fetcher, _ = make_fetcher(
            {
                "/": (200, HTML, html_page("/a", "/b", "/c", "https://other.org/x")),
                "/a": (200, HTML, html_page("/")),
                "/b": (200, HTML, html_page()),
                "/c": (200, HTML, html_page()),
            }
        )

        result = await make_estimator(fetcher).estimate()

        assert not result.sitemap_found
        assert not result.pagination_detected
        assert result.estimated_total == result.discovered_urls == 4
        assert result.confidence == Confidence.MEDIUM
        assert "https://other.org/x" not in result.sample_urls

    @pytest.mark.asyncio
    async def test_sample_bounded_by_max_pages(self, make_fetcher: Any) -> None:
        """Test that the sample crawl stops at max_sample_pages."""
        fetcher, site = make_fetcher(
            {f"/p{i}": (200, HTML, html_page(*(f"/p{j}" for j in range(i + 1, i + 6)))) for i in range(40)}
        )

        await make_estimator(fetcher, url=f"{BASE_URL}/p0", max_sample_pages=4).estimate()

        assert len([t for t in site.gets() if t.startswith("/p")]) == 4


class TestFallback:
    """Tests for the error fallback."""

    @pytest.mark.asyncio
    async def test_invalid_url(self, make_fetcher: Any) -> None:
        """Test that an invalid URL falls back without raising."""
        fetcher, _ = make_fetcher({})

        result = await make_estimator(fetcher, url="not-a-url").estimate()

        assert result.confidence == Confidence.ERROR
        assert result.estimated_total == 1
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_deadline(self) -> None:
        """Test that the overall deadline produces a fallback."""

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
            estimator = make_estimator(Fetcher(client=client), max_duration_seconds=0.05)

            result = await estimator.estimate()

        assert result.confidence == Confidence.ERROR
        assert result.error == "Estimation timed out"
