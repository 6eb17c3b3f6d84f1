"""
Tests for robots.txt parsing and the robots gate.
"""

from typing import Any

import httpx
import pytest

from sponge.compliance.robots_parser import RobotsGate, RobotsParser, RobotsPolicy
from sponge.core.fetcher import Fetcher, FetcherConfig
from sponge.exceptions import RobotsDisallowedError

UA = "Sponge-Crawler/1.0 (+https://github.com/sponge-crawler/sponge)"


def parse(content: str) -> RobotsPolicy:
    return RobotsParser().parse(content, "https://example.com")


class TestRobotsParser:
    """Tests for RobotsParser and RobotsPolicy."""

    def test_restrictive_wildcard_group(self, sample_robots_txt_restrictive: str) -> None:
        """Test that the wildcard group applies to unknown agents."""
        policy = parse(sample_robots_txt_restrictive)

        assert not policy.is_allowed("https://example.com/anything", UA)
        assert policy.is_allowed("https://example.com/anything", "Googlebot/2.1")

    def test_permissive_with_crawl_delay_and_sitemap(self, sample_robots_txt_permissive: str) -> None:
        """Test crawl-delay and sitemap extraction."""
        policy = parse(sample_robots_txt_permissive)

        assert policy.is_allowed("https://example.com/page", UA)
        assert policy.crawl_delay(UA) == 1.0
        assert policy.sitemaps == ["https://example.com/sitemap.xml"]

    def test_longest_match_wins(self) -> None:
        """Test that a more specific Allow overrides a broader Disallow."""
        policy = parse(
            """
User-agent: *
Disallow: /private
Allow: /private/public
"""
        )

        assert not policy.is_allowed("https://example.com/private/secret", UA)
        assert policy.is_allowed("https://example.com/private/public/page", UA)
        assert policy.is_allowed("https://example.com/other", UA)

    def test_allow_wins_ties(self) -> None:
        """Test that Allow wins over an equally long Disallow."""
        policy = parse("User-agent: *\nDisallow: /page\nAllow: /page\n")

        assert policy.is_allowed("https://example.com/page", UA)

    def test_wildcard_and_end_anchor(self) -> None:
        """Test * and $ in patterns."""
        policy = parse("User-agent: *\nDisallow: /*.pdf$\nDisallow: /*?session=\n")

        assert not policy.is_allowed("https://example.com/docs/a.pdf", UA)
        assert policy.is_allowed("https://example.com/docs/a.pdf.html", UA)
        assert not policy.is_allowed("https://example.com/list?session=abc", UA)

    def test_specific_agent_group(self) -> None:
        """Test that a group naming the crawler's product token is used."""
        policy = parse(
            """
User-agent: *
Disallow: /

User-agent: sponge-crawler
Disallow: /admin
Crawl-delay: 3
"""
        )

        assert policy.is_allowed("https://example.com/page", UA)
        assert not policy.is_allowed("https://example.com/admin", UA)
        assert policy.crawl_delay(UA) == 3.0

    def test_empty_disallow_allows_everything(self) -> None:
        """Test that an empty Disallow is not a rule."""
        policy = parse("User-agent: *\nDisallow:\n")

        assert policy.is_allowed("https://example.com/anything", UA)

    def test_no_groups_allows_everything(self) -> None:
        """Test that a file with no groups allows all."""
        policy = parse("# nothing here\n")

        assert policy.is_allowed("https://example.com/", UA)
        assert policy.crawl_delay(UA) is None


class TestRobotsGate:
    """Tests for RobotsGate fetching and caching."""

    @pytest.mark.asyncio
    async def test_missing_robots_fails_open(self, make_fetcher: Any) -> None:
        """Test that a 404 robots.txt allows everything."""
        fetcher, _ = make_fetcher({})
        gate = RobotsGate(fetcher, user_agent=UA, default_delay=0.5)

        assert await gate.is_allowed("https://example.com/private")
        assert await gate.crawl_delay("https://example.com/") == 0.5
        assert await gate.sitemaps("https://example.com/") == []

    @pytest.mark.asyncio
    async def test_network_error_fails_open(self) -> None:
        """Test that a transport failure allows everything."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gate = RobotsGate(Fetcher(FetcherConfig(), client=client), user_agent=UA)

            assert await gate.is_allowed("https://example.com/page")

    @pytest.mark.asyncio
    async def test_policy_is_fetched_once_per_origin(self, make_fetcher: Any) -> None:
        """Test the per-origin cache."""
        fetcher, site = make_fetcher(
            {"/robots.txt": (200, "text/plain", "User-agent: *\nDisallow: /private\nCrawl-delay: 2\n")}
        )
        gate = RobotsGate(fetcher, user_agent=UA, default_delay=0.5)

        assert not await gate.is_allowed("https://example.com/private/x")
        assert await gate.is_allowed("https://example.com/public")
        assert await gate.crawl_delay("https://example.com/") == 2.0

        assert site.requests.count(("GET", "/robots.txt")) == 1

    @pytest.mark.asyncio
    async def test_clear_cache_refetches(self, make_fetcher: Any) -> None:
        """Test that clearing the cache forces a new robots.txt fetch."""
        fetcher, site = make_fetcher({"/robots.txt": (200, "text/plain", "User-agent: *\nAllow: /\n")})
        gate = RobotsGate(fetcher, user_agent=UA)

        await gate.is_allowed("https://example.com/a")
        gate.clear_cache()
        await gate.is_allowed("https://example.com/b")

        assert site.requests.count(("GET", "/robots.txt")) == 2

    @pytest.mark.asyncio
    async def test_unrequestable_origin_fails_open(self, make_fetcher: Any) -> None:
        """Test that a robots URL httpx rejects yields an allow-all policy."""
        fetcher, _ = make_fetcher({})
        gate = RobotsGate(fetcher, user_agent=UA)

        assert await gate.is_allowed("http://bad\x01host.example/page")

    @pytest.mark.asyncio
    async def test_require_allowed_raises_when_disallowed(self, make_fetcher: Any) -> None:
        """Test the raising form of the check."""
        fetcher, _ = make_fetcher({"/robots.txt": (200, "text/plain", "User-agent: *\nDisallow: /private\n")})
        gate = RobotsGate(fetcher, user_agent=UA)

        await gate.require_allowed("https://example.com/public")
        with pytest.raises(RobotsDisallowedError) as exc_info:
            await gate.require_allowed("https://example.com/private/x")

        assert exc_info.value.reason == "Blocked by robots.txt"
        assert exc_info.value.user_agent == UA
