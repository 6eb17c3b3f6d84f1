"""
Configuration for the Sponge crawler.

Process-wide defaults are loaded from environment variables with the SPONGE_
prefix; each crawl session gets its own CrawlConfig built from those defaults.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sponge.exceptions import ConfigurationError

DEFAULT_USER_AGENT = "Sponge-Crawler/1.0 (+https://github.com/sponge-crawler/sponge)"

DEFAULT_FILE_TYPES = [
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    "txt", "csv", "json", "xml",
    "jpg", "jpeg", "png", "gif", "webp", "svg",
]


class PageContentFormat(str, Enum):
    """Output format for saved page content."""

    HTML = "html"
    TEXT = "text"
    MARKDOWN = "markdown"


class OutputLayout(str, Enum):
    """How downloaded resources are laid out under the output directory."""

    MIRROR = "mirror"  # <out>/<host>/<path dirs>/<file>
    FLAT = "flat"      # <out>/<host>_<file>


class SpongeSettings(BaseSettings):
    """Main settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPONGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Identity
    user_agent: str = DEFAULT_USER_AGENT

    # Crawl limits
    max_depth: int = 3
    max_pages: int = 1000
    concurrency: int = Field(default=5, ge=1, le=20)

    # Rate limiting
    delay: float = 1.0
    random_delay: bool = True
    respect_robots_txt: bool = True

    # Output
    output_dir: str = "./downloads"
    layout: OutputLayout = OutputLayout.MIRROR
    overwrite_existing: bool = False
    save_page_content: bool = False
    page_content_format: PageContentFormat = PageContentFormat.TEXT

    # Filtering
    allowed_file_types: list[str] = Field(default_factory=lambda: list(DEFAULT_FILE_TYPES))
    stay_on_domain: bool = True
    min_file_size: int = 100
    max_file_size: int = 100 * 1024 * 1024  # 100MB

    # Safety limits
    timeout_seconds: float = 30.0
    session_timeout_seconds: float = 1800.0  # 30 minutes
    max_page_size_mb: float = 10.0
    download_concurrency: int = 3

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"


@dataclass
class CrawlConfig:
    """Complete crawl session request."""

    start_url: str
    output_dir: str = "./downloads"
    max_depth: int = 3
    max_pages: int = 1000
    concurrency: int = 5

    # Rate limiting
    delay: float = 1.0  # seconds between dispatches
    random_delay: bool = True
    respect_robots_txt: bool = True

    # Filtering
    allowed_file_types: list[str] = field(default_factory=lambda: list(DEFAULT_FILE_TYPES))
    stay_on_domain: bool = True
    allowed_domains: list[str] = field(default_factory=list)
    blocked_domains: list[str] = field(default_factory=list)
    min_file_size: int = 100
    max_file_size: int = 100 * 1024 * 1024

    # Page content
    save_page_content: bool = False
    page_content_format: PageContentFormat = PageContentFormat.TEXT

    # Output
    layout: OutputLayout = OutputLayout.MIRROR
    overwrite_existing: bool = False
    download_concurrency: int = 3
    batch_pause: float = 1.0

    # Requests
    timeout_seconds: float = 30.0
    session_timeout_seconds: float = 1800.0
    user_agent: str = DEFAULT_USER_AGENT
    headers: dict[str, str] = field(default_factory=dict)
    follow_redirects: bool = True
    max_page_size: int = 10 * 1024 * 1024

    @classmethod
    def from_settings(
        cls,
        start_url: str,
        settings: SpongeSettings | None = None,
        **overrides: Any,
    ) -> "CrawlConfig":
        """
        Build a session config from process settings.

        Args:
            start_url: Seed URL for the crawl.
            settings: Process settings (loaded from the environment if None).
            **overrides: Field values that win over the settings.

        Returns:
            A new CrawlConfig.
        """
        settings = settings or load_config()
        names = {f.name for f in fields(cls)}
        values = {
            key: value
            for key, value in settings.model_dump().items()
            if key in names
        }
        values["max_page_size"] = int(settings.max_page_size_mb * 1024 * 1024)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(start_url=start_url, **values)

    def with_overrides(self, **overrides: Any) -> "CrawlConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **overrides)

    def validate(self) -> None:
        """
        Validate the config for crawl execution.

        Raises:
            ConfigurationError: Listing every problem found.
        """
        errors = []

        if not self.start_url:
            errors.append("Start URL is required")
        else:
            parsed = urlparse(self.start_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append("Invalid start URL format")

        if self.max_depth < 0:
            errors.append("Max depth must be >= 0")

        if self.max_pages < 1:
            errors.append("Max pages must be >= 1")

        if self.concurrency < 1 or self.concurrency > 20:
            errors.append("Concurrency must be between 1 and 20")

        if self.delay < 0:
            errors.append("Delay must be >= 0")

        if self.min_file_size > self.max_file_size:
            errors.append("Min file size must not exceed max file size")

        try:
            PageContentFormat(self.page_content_format)
        except ValueError:
            errors.append(f"Unknown page content format: {self.page_content_format}")

        if errors:
            raise ConfigurationError(errors)


@dataclass
class EstimationConfig:
    """Pre-crawl page estimation request."""

    url: str
    max_depth: int = 3
    timeout_seconds: float = 10.0
    max_sample_pages: int = 50
    max_duration_seconds: float | None = 120.0
    user_agent: str = "Sponge-Crawler/Page-Estimator"


def load_config() -> SpongeSettings:
    """Load configuration from environment variables."""
    return SpongeSettings()
