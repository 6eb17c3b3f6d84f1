"""
Builders for canned HTTP responses used across the unit tests.
"""

from typing import Any

import httpx

BASE_URL = "https://example.com"

HTML = "text/html; charset=utf-8"
PDF = "application/pdf"

# path (with query) -> (status, content type, body) or a callable returning an httpx.Response
Routes = dict[str, Any]


def html_page(*hrefs: str, title: str = "Page", extra: str = "") -> str:
    """Build a small HTML page with enough text to be worth saving."""
    links = "\n".join(f'<li><a href="{href}">{href}</a></li>' for href in hrefs)
    return f"""
<html>
<head><title>{title}</title><script>var tracking = 1;</script></head>
<body>
  <h1>{title}</h1>
  <p>This page exists to exercise the crawler and carries a paragraph of text.</p>
  <ul>{links}</ul>
  {extra}
</body>
</html>
"""


def sitemap_xml(urls: list[str]) -> str:
    entries = "\n".join(f"  <url><loc>{url}</loc></url>" for url in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{entries}\n"
        "</urlset>"
    )


def sitemap_index_xml(urls: list[str]) -> str:
    entries = "\n".join(f"  <sitemap><loc>{url}</loc></sitemap>" for url in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{entries}\n"
        "</sitemapindex>"
    )


class FakeSite:
    """Serves canned responses through httpx.MockTransport and records requests."""

    def __init__(self, routes: Routes):
        self.routes = routes
        self.requests: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        target = request.url.raw_path.decode()
        self.requests.append((request.method, target))

        route = self.routes.get(target)
        if route is None:
            route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, headers={"content-type": "text/plain"}, content=b"not found")
        if callable(route):
            return route(request)

        status, content_type, body = route
        if isinstance(body, str):
            body = body.encode("utf-8")
        return httpx.Response(status, headers={"content-type": content_type}, content=body)

    def gets(self, exclude_robots: bool = True) -> list[str]:
        """Targets requested with GET."""
        return [
            target
            for method, target in self.requests
            if method == "GET" and not (exclude_robots and target == "/robots.txt")
        ]
