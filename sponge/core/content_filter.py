"""
URL and content filtering for the Sponge crawler.

Decides whether a URL may be crawled, whether it names a downloadable
document, and whether a resource size is acceptable. All rules are
compiled once into a FilterPolicy at session start.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import unquote, urlparse

from sponge.config import CrawlConfig
from sponge.models import Classification
from sponge.utils.url_utils import get_domain, get_query_param, host_matches

# URLs matching any of these are never crawled.
IGNORE_PATTERNS = (
    r"\.(js|css|woff|woff2|ttf|eot|ico)$",
    r"javascript:",
    r"mailto:",
    r"tel:",
    r"^#",
    r"#[^/]*$",
    r"\?.*=.*javascript",
)

CONTENT_TYPE_EXTENSIONS = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
    "text/csv": "csv",
    "application/json": "json",
    "application/xml": "xml",
    "text/xml": "xml",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}

HTML_CONTENT_TYPES = frozenset(["text/html", "application/xhtml+xml"])

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_UNDERSCORE_RUN = re.compile(r"_+")

MAX_FILENAME_LENGTH = 255


def media_type(content_type: str | None) -> str:
    """Strip parameters from a Content-Type header value."""
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()


@dataclass(frozen=True)
class FilterPolicy:
    """Read-only filtering rules for one crawl session."""

    extensions: frozenset[str] = frozenset()
    allowed_domains: tuple[str, ...] = ()
    blocked_domains: tuple[str, ...] = ()
    stay_on_domain: bool = True
    seed_host: str = ""
    min_file_size: int = 0
    max_file_size: int = 100 * 1024 * 1024
    ignore_patterns: tuple[re.Pattern, ...] = field(
        default_factory=lambda: tuple(re.compile(p, re.IGNORECASE) for p in IGNORE_PATTERNS)
    )

    @classmethod
    def from_config(cls, config: CrawlConfig) -> "FilterPolicy":
        """Compile a policy from a session config."""
        return cls(
            extensions=frozenset(t.lower().lstrip(".") for t in config.allowed_file_types),
            allowed_domains=tuple(d.lower() for d in config.allowed_domains),
            blocked_domains=tuple(d.lower() for d in config.blocked_domains),
            stay_on_domain=config.stay_on_domain,
            seed_host=get_domain(config.start_url),
            min_file_size=config.min_file_size,
            max_file_size=config.max_file_size,
        )


class ContentFilter:
    """
    Applies a FilterPolicy to URLs and content types.

    An empty extension set disables document classification entirely;
    it does not fall back to defaults.
    """

    def __init__(self, policy: FilterPolicy):
        self.policy = policy

    @classmethod
    def from_config(cls, config: CrawlConfig) -> "ContentFilter":
        return cls(FilterPolicy.from_config(config))

    # =========================================================================
    # Crawl decisions
    # =========================================================================

    def should_crawl(self, url: str) -> bool:
        """
        Check if a URL may be fetched at all.

        Args:
            url: Absolute URL.

        Returns:
            False for non-HTTP schemes, disallowed domains, ignored
            patterns, and malformed URLs.
        """
        try:
            parsed = urlparse(url)
            host = parsed.hostname
        except ValueError:
            return False

        if parsed.scheme not in ("http", "https") or not host:
            return False

        if not self.is_domain_allowed(host):
            return False

        return not self.matches_ignore_pattern(url)

    def should_follow(self, url: str) -> bool:
        """Check if a URL should be traversed as a page (not downloaded)."""
        return self.should_crawl(url) and not self.is_document(url)

    def matches_ignore_pattern(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in self.policy.ignore_patterns)

    def is_domain_allowed(self, host: str) -> bool:
        """
        Check a host against the domain rules.

        Blocked substrings reject first. An allow-list, when present, must
        contain the host or one of its parent domains. Otherwise
        stay_on_domain pins the crawl to the seed host and its subdomains.
        """
        host = host.lower()
        policy = self.policy

        if any(blocked in host for blocked in policy.blocked_domains):
            return False

        if policy.allowed_domains:
            return any(host_matches(host, domain) for domain in policy.allowed_domains)

        if policy.stay_on_domain and policy.seed_host:
            return host_matches(host, policy.seed_host)

        return True

    # =========================================================================
    # Classification
    # =========================================================================

    def is_document(self, url: str, content_type: str | None = None) -> bool:
        """
        Check if a URL (and optional content type) names a document.

        The URL path extension wins; the content type is only consulted
        when the path has no configured extension.
        """
        if not self.policy.extensions:
            return False

        if self._path_extension(url) in self.policy.extensions:
            return True

        ext = CONTENT_TYPE_EXTENSIONS.get(media_type(content_type))
        return ext is not None and ext in self.policy.extensions

    def is_html(self, content_type: str | None) -> bool:
        return media_type(content_type) in HTML_CONTENT_TYPES

    def classify(self, url: str, content_type: str | None) -> Classification:
        """Classify a fetched response once for the orchestrator."""
        if self.is_html(content_type):
            return Classification.html_page()
        if self.is_document(url, content_type):
            return Classification.document(self.get_file_extension(url, content_type))
        return Classification.unknown()

    def is_pagination_url(self, url: str) -> bool:
        """Check if a URL carries a numeric ``page`` query parameter."""
        try:
            value = get_query_param(url, "page")
        except ValueError:
            return False
        return value is not None and value.isdecimal()

    # =========================================================================
    # Size and naming
    # =========================================================================

    def is_file_size_allowed(self, size: int | str | None) -> bool:
        """True if the size is unknown or within [min_file_size, max_file_size]."""
        if size is None or size == "":
            return True
        try:
            value = int(size)
        except (TypeError, ValueError):
            return True
        return self.policy.min_file_size <= value <= self.policy.max_file_size

    def get_file_extension(self, url: str, content_type: str | None = None) -> str:
        """
        Determine a file extension for a URL.

        Returns:
            A configured extension from the path or content type, else the
            raw path extension, else "unknown".
        """
        path_ext = self._path_extension(url)
        if path_ext and path_ext in self.policy.extensions:
            return path_ext

        ext = CONTENT_TYPE_EXTENSIONS.get(media_type(content_type))
        if ext and ext in self.policy.extensions:
            return ext

        return path_ext or "unknown"

    def sanitize_filename(self, url: str, content_type: str | None = None) -> str:
        """
        Derive a filesystem-safe file name from a URL.

        The name never contains a path separator and keeps its extension
        when truncated.
        """
        try:
            path = urlparse(url).path
        except ValueError:
            return "unknown_file"

        name = unquote(path.rsplit("/", 1)[-1]) or "index"
        name = name.split("?")[0].split("#")[0]

        if "." not in name:
            ext = self.get_file_extension(url, content_type)
            name += f".{ext}" if ext != "unknown" else ".html"

        name = _UNDERSCORE_RUN.sub("_", _UNSAFE_CHARS.sub("_", name))

        if len(name) > MAX_FILENAME_LENGTH:
            stem, dot, ext = name.rpartition(".")
            if dot and len(ext) < 16:
                name = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
            else:
                name = name[:MAX_FILENAME_LENGTH]

        if not name.strip("._"):
            return "unknown_file"
        return name

    @staticmethod
    def _path_extension(url: str) -> str:
        try:
            last = urlparse(url).path.rsplit("/", 1)[-1]
        except ValueError:
            return ""
        if "." not in last:
            return ""
        return last.rsplit(".", 1)[-1].lower()
