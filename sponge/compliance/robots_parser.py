"""
Robots.txt parsing and compliance gating for the Sponge crawler.

RobotsParser turns robots.txt text into a RobotsPolicy. RobotsGate fetches
and caches one policy per origin and fails open: if robots.txt cannot be
fetched or parsed, everything is allowed.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sponge.exceptions import RobotsDisallowedError, SpongeError
from sponge.utils.logging import CrawlerLogger
from sponge.utils.url_utils import get_origin, get_path

if TYPE_CHECKING:
    from sponge.core.fetcher import Fetcher


@dataclass
class RobotsRule:
    """A single Allow/Disallow rule from robots.txt."""

    pattern: str
    allow: bool
    line_number: int = 0
    _regex: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def matches(self, path: str) -> bool:
        """Check if this rule matches the given path."""
        if self._regex is None:
            self._regex = re.compile(self._pattern_to_regex(self.pattern))
        return bool(self._regex.match(path))

    @staticmethod
    def _pattern_to_regex(pattern: str) -> str:
        # * is a wildcard, a trailing $ anchors the end, anything else is a prefix
        escaped = re.escape(pattern).replace(r"\*", ".*")
        if escaped.endswith(r"\$"):
            escaped = escaped[:-2] + "$"
        return "^" + escaped


@dataclass
class RobotsGroup:
    """A user-agent group from robots.txt."""

    user_agents: list[str] = field(default_factory=list)
    rules: list[RobotsRule] = field(default_factory=list)
    crawl_delay: float | None = None


@dataclass
class RobotsPolicy:
    """Parsed robots.txt for one origin."""

    origin: str
    groups: list[RobotsGroup] = field(default_factory=list)
    sitemaps: list[str] = field(default_factory=list)
    fetch_status: int | None = 200
    parsed_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def allow_all(cls, origin: str, fetch_status: int | None = None) -> "RobotsPolicy":
        """Policy used when robots.txt is missing or unreadable."""
        return cls(origin=origin, fetch_status=fetch_status)

    def find_group(self, user_agent: str) -> RobotsGroup | None:
        """Find the group that applies to a user agent, falling back to '*'."""
        token = user_agent.lower()
        product = token.split("/", 1)[0].strip()
        wildcard = None

        for group in self.groups:
            for ua in group.user_agents:
                if ua == "*":
                    wildcard = wildcard or group
                elif ua == product or token.startswith(ua):
                    return group

        return wildcard

    def is_allowed(self, url: str, user_agent: str) -> bool:
        """
        Check if a URL may be fetched.

        The longest matching pattern wins; on a tie, Allow wins.
        """
        group = self.find_group(user_agent)
        if group is None:
            return True

        path = get_path(url)
        query = url.split("?", 1)[1].split("#", 1)[0] if "?" in url else ""
        target = f"{path}?{query}" if query else path

        rules = sorted(group.rules, key=lambda r: (len(r.pattern), r.allow), reverse=True)
        for rule in rules:
            if rule.matches(target):
                return rule.allow
        return True

    def crawl_delay(self, user_agent: str) -> float | None:
        group = self.find_group(user_agent)
        return group.crawl_delay if group else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "origin": self.origin,
            "groups": [
                {
                    "user_agents": g.user_agents,
                    "rules": [{"pattern": r.pattern, "allow": r.allow} for r in g.rules],
                    "crawl_delay": g.crawl_delay,
                }
                for g in self.groups
            ],
            "sitemaps": self.sitemaps,
            "fetch_status": self.fetch_status,
            "parsed_at": self.parsed_at.isoformat(),
        }


class RobotsParser:
    """Parser for robots.txt files."""

    def parse(self, content: str, origin: str) -> RobotsPolicy:
        """
        Parse robots.txt content.

        Args:
            content: Raw robots.txt content.
            origin: scheme://host the file was fetched from.

        Returns:
            Parsed RobotsPolicy.
        """
        policy = RobotsPolicy(origin=origin)
        current_group: RobotsGroup | None = None

        for line_number, line in enumerate(content.splitlines(), start=1):
            line = line.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue

            directive, value = line.split(":", 1)
            directive = directive.strip().lower()
            value = value.strip()

            if directive == "user-agent":
                # consecutive User-agent lines share one group
                if current_group is None or current_group.rules or current_group.crawl_delay is not None:
                    current_group = RobotsGroup()
                    policy.groups.append(current_group)
                current_group.user_agents.append(value.lower())

            elif directive == "disallow" and current_group is not None:
                if value:  # empty Disallow allows everything
                    current_group.rules.append(
                        RobotsRule(pattern=value, allow=False, line_number=line_number)
                    )

            elif directive == "allow" and current_group is not None:
                if value:
                    current_group.rules.append(
                        RobotsRule(pattern=value, allow=True, line_number=line_number)
                    )

            elif directive == "crawl-delay" and current_group is not None:
                try:
                    current_group.crawl_delay = float(value)
                except ValueError:
                    pass

            elif directive == "sitemap" and value:
                policy.sitemaps.append(value)

        return policy


class RobotsGate:
    """
    Per-origin robots.txt cache and compliance check.

    Concurrent callers for the same origin wait on one fetch. Any failure
    (network error, non-200 status, unparseable body) caches an
    allow-all policy so the crawl never stalls on robots metadata.
    """

    def __init__(
        self,
        fetcher: "Fetcher",
        user_agent: str,
        default_delay: float = 1.0,
        logger: CrawlerLogger | None = None,
    ):
        """
        Initialize the gate.

        Args:
            fetcher: HTTP collaborator used to download robots.txt.
            user_agent: User agent whose group is applied.
            default_delay: Delay reported when robots.txt sets none.
            logger: Logger instance.
        """
        self.fetcher = fetcher
        self.user_agent = user_agent
        self.default_delay = default_delay
        self.logger = logger or CrawlerLogger("robots")

        self._parser = RobotsParser()
        self._cache: dict[str, RobotsPolicy] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, origin: str) -> asyncio.Lock:
        if origin not in self._locks:
            self._locks[origin] = asyncio.Lock()
        return self._locks[origin]

    async def load_policy(self, url: str) -> RobotsPolicy:
        """
        Get the robots policy for a URL's origin, fetching it once.

        Args:
            url: Any URL on the origin.

        Returns:
            The cached or freshly parsed policy.
        """
        origin = get_origin(url)
        cached = self._cache.get(origin)
        if cached is not None:
            return cached

        async with self._get_lock(origin):
            cached = self._cache.get(origin)
            if cached is not None:
                return cached

            robots_url = f"{origin}/robots.txt"
            try:
                status_code, text = await self.fetcher.get_text(robots_url)
                if status_code == 200:
                    policy = self._parser.parse(text, origin)
                else:
                    policy = RobotsPolicy.allow_all(origin, fetch_status=status_code)
            except (SpongeError, ValueError, UnicodeDecodeError) as e:
                self.logger.debug("robots_unavailable", url=robots_url, error=str(e))
                policy = RobotsPolicy.allow_all(origin)

            self._cache[origin] = policy
            return policy

    async def is_allowed(self, url: str) -> bool:
        """Check if robots.txt allows fetching a URL."""
        policy = await self.load_policy(url)
        allowed = policy.is_allowed(url, self.user_agent)
        self.logger.robots_check(url=url, allowed=allowed)
        return allowed

    async def require_allowed(self, url: str) -> None:
        """
        Check a URL against robots.txt.

        Raises:
            RobotsDisallowedError: If the URL is disallowed for this agent.
        """
        if not await self.is_allowed(url):
            raise RobotsDisallowedError(url, self.user_agent)

    async def crawl_delay(self, url: str) -> float:
        """Crawl delay in seconds for the URL's origin, or the default delay."""
        policy = await self.load_policy(url)
        delay = policy.crawl_delay(self.user_agent)
        return delay if delay is not None else self.default_delay

    async def sitemaps(self, url: str) -> list[str]:
        """Sitemap URLs declared in robots.txt; empty on failure."""
        policy = await self.load_policy(url)
        return list(policy.sitemaps)

    def clear_cache(self) -> None:
        """Forget every cached policy."""
        self._cache.clear()
        self._locks.clear()
