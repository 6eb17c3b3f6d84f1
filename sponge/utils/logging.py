"""
Structured logging for the Sponge crawler.

Provides JSON or console logging with context propagation.
"""

import logging
import sys
from typing import Any

import structlog


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: str | None = None,
) -> None:
    """
    Configure structured logging for the crawler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format_type: Output format ('json' or 'console').
        log_file: Optional file path to write logs to.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=log_file is None),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structured logger.
    """
    return structlog.get_logger(name)


class CrawlerLogger:
    """
    Specialized logger for crawl operations with pre-defined event types.
    """

    def __init__(self, name: str = "sponge"):
        self._logger = get_logger(name)
        self._context: dict[str, Any] = {}

    def bind(self, **kwargs: Any) -> "CrawlerLogger":
        """Bind context to all subsequent log calls."""
        new_logger = CrawlerLogger.__new__(CrawlerLogger)
        new_logger._logger = self._logger.bind(**kwargs)
        new_logger._context = {**self._context, **kwargs}
        return new_logger

    def fetch_start(self, url: str, **kwargs: Any) -> None:
        """Log the start of a fetch operation."""
        self._logger.debug(
            "fetch_start",
            event_type="fetch",
            url=url,
            **kwargs,
        )

    def fetch_success(
        self,
        url: str,
        status_code: int,
        duration_ms: float,
        content_type: str,
        **kwargs: Any,
    ) -> None:
        """Log a successful fetch."""
        self._logger.info(
            "fetch_success",
            event_type="fetch",
            url=url,
            status_code=status_code,
            duration_ms=round(duration_ms, 1),
            content_type=content_type,
            **kwargs,
        )

    def fetch_error(
        self,
        url: str,
        error: str,
        error_type: str,
        **kwargs: Any,
    ) -> None:
        """Log a fetch error."""
        self._logger.error(
            "fetch_error",
            event_type="fetch",
            url=url,
            error=error,
            error_type=error_type,
            **kwargs,
        )

    def url_skipped(self, url: str, reason: str, **kwargs: Any) -> None:
        """Log a URL passed over by the traversal loop."""
        self._logger.debug(
            "url_skipped",
            event_type="traversal",
            url=url,
            reason=reason,
            **kwargs,
        )

    def robots_check(
        self,
        url: str,
        allowed: bool,
        **kwargs: Any,
    ) -> None:
        """Log a robots.txt check."""
        self._logger.debug(
            "robots_check",
            event_type="compliance",
            url=url,
            allowed=allowed,
            **kwargs,
        )

    def rate_limit_wait(
        self,
        delay_seconds: float,
        **kwargs: Any,
    ) -> None:
        """Log dispatch gate waiting."""
        self._logger.debug(
            "rate_limit_wait",
            event_type="compliance",
            delay_seconds=round(delay_seconds, 3),
            **kwargs,
        )

    def document_found(self, url: str, source_url: str, **kwargs: Any) -> None:
        """Log a newly registered document."""
        self._logger.debug(
            "document_found",
            event_type="discovery",
            url=url,
            source_url=source_url,
            **kwargs,
        )

    def pagination_detected(self, url: str, total_pages: int, **kwargs: Any) -> None:
        """Log pagination found on the seed page."""
        self._logger.info(
            "pagination_detected",
            event_type="discovery",
            url=url,
            total_pages=total_pages,
            **kwargs,
        )

    def download_result(
        self,
        url: str,
        success: bool,
        **kwargs: Any,
    ) -> None:
        """Log the outcome of a document download."""
        level = "info" if success else "warning"
        getattr(self._logger, level)(
            "download_result",
            event_type="download",
            url=url,
            success=success,
            **kwargs,
        )

    def crawl_progress(
        self,
        pages_visited: int,
        queue_size: int,
        documents_found: int,
        errors: int,
        **kwargs: Any,
    ) -> None:
        """Log crawl progress."""
        self._logger.info(
            "crawl_progress",
            event_type="progress",
            pages_visited=pages_visited,
            queue_size=queue_size,
            documents_found=documents_found,
            errors=errors,
            **kwargs,
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""
        self._logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        self._logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""
        self._logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error message."""
        self._logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        """Log a critical message."""
        self._logger.critical(message, **kwargs)
