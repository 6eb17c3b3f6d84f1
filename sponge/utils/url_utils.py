"""
URL manipulation utilities for the Sponge crawler.

Provides domain/origin extraction, resolution, and validation.
"""

import re
from urllib.parse import parse_qs, unquote, urlencode, urljoin, urlparse, urlunparse


def get_domain(url: str) -> str:
    """
    Extract the host (without port) from a URL.

    Args:
        url: The URL to extract the host from.

    Returns:
        The lowercase hostname, or "" if the URL has none.
    """
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def get_origin(url: str) -> str:
    """
    Extract scheme://host[:port] from a URL.

    Args:
        url: The URL to extract the origin from.

    Returns:
        The origin string, used as a per-site cache key.
    """
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def get_path(url: str) -> str:
    """
    Extract the path from a URL.

    Args:
        url: The URL to extract path from.

    Returns:
        The path portion of the URL.
    """
    parsed = urlparse(url)
    return parsed.path or "/"


def path_segments(url: str) -> list[str]:
    """Return the non-empty, percent-decoded path segments of a URL."""
    return [unquote(s) for s in get_path(url).split("/") if s]


def resolve_url(base_url: str, relative_url: str) -> str | None:
    """
    Resolve a relative URL against a base URL.

    Args:
        base_url: The base URL to resolve against.
        relative_url: The relative URL to resolve.

    Returns:
        The resolved absolute URL, or None if it cannot be resolved.
    """
    try:
        return urljoin(base_url, relative_url.strip())
    except ValueError:
        return None


def is_valid_url(url: str) -> bool:
    """
    Check if a URL is valid and has an HTTP(S) scheme.

    Args:
        url: The URL to validate.

    Returns:
        True if URL is valid for crawling.
    """
    try:
        parsed = urlparse(url)
        return bool(parsed.scheme in ("http", "https") and parsed.hostname)
    except ValueError:
        return False


def host_matches(host: str, domain: str) -> bool:
    """Check if host equals domain or is one of its subdomains."""
    host = host.lower()
    domain = domain.lower().lstrip(".")
    return host == domain or host.endswith(f".{domain}")


def set_query_param(url: str, name: str, value: str) -> str:
    """
    Return the URL with one query parameter set (added or replaced).

    Other parameters keep their order.
    """
    parsed = urlparse(url)
    params = parse_qs(parsed.query, keep_blank_values=True)
    params[name] = [value]
    query = urlencode(params, doseq=True)
    return urlunparse(parsed._replace(query=query, fragment=""))


def get_query_param(url: str, name: str) -> str | None:
    """Return the first value of a query parameter, if present."""
    values = parse_qs(urlparse(url).query, keep_blank_values=True).get(name)
    return values[0] if values else None


_UNSAFE_HOST_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def safe_host(url: str) -> str:
    """Return the host with filesystem-unsafe characters replaced."""
    return _UNSAFE_HOST_CHARS.sub("_", get_domain(url)) or "unknown_host"
