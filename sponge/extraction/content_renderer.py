"""
Page content rendering.

Turns a fetched HTML page into cleaned HTML, plain text, or a minimal
markdown approximation for saving alongside downloaded documents.
"""

import re

from bs4 import BeautifulSoup

from sponge.config import PageContentFormat

_WHITESPACE = re.compile(r"\s+")

# Structured markdown shorter than this falls back to plain text.
MIN_MARKDOWN_LENGTH = 100

FILE_EXTENSIONS = {
    PageContentFormat.HTML: "html",
    PageContentFormat.TEXT: "txt",
    PageContentFormat.MARKDOWN: "md",
}


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class ContentRenderer:
    """Renders HTML pages into one of the page content formats."""

    STRIP_TAGS = ("script", "style", "noscript")

    def clean(self, html: str) -> BeautifulSoup:
        """Parse HTML and drop script/style/noscript elements."""
        soup = BeautifulSoup(html, "lxml")
        for tag in soup.find_all(self.STRIP_TAGS):
            tag.decompose()
        return soup

    def render(self, html: str, fmt: PageContentFormat | str) -> str:
        """
        Render a page.

        Args:
            html: Raw page HTML.
            fmt: Output format.

        Returns:
            The rendered content, stripped of surrounding whitespace.
        """
        fmt = PageContentFormat(fmt)
        soup = self.clean(html)

        if fmt == PageContentFormat.HTML:
            return str(soup).strip()
        if fmt == PageContentFormat.MARKDOWN:
            return self.to_markdown(soup)
        return self.to_text(soup)

    def to_text(self, soup: BeautifulSoup) -> str:
        """Body text with whitespace collapsed."""
        body = soup.body
        text = _collapse(body.get_text(" ")) if body else ""
        return text or _collapse(soup.get_text(" "))

    def to_markdown(self, soup: BeautifulSoup) -> str:
        """
        Minimal markdown: headings, then paragraphs, then links, then lists.

        Falls back to plain text when the structured output is too short.
        """
        parts: list[str] = []

        for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
            text = _collapse(heading.get_text(" "))
            if text:
                parts.append(f"{'#' * int(heading.name[1])} {text}\n\n")

        for para in soup.find_all("p"):
            text = _collapse(para.get_text(" "))
            if text:
                parts.append(f"{text}\n\n")

        for anchor in soup.find_all("a", href=True):
            text = _collapse(anchor.get_text(" "))
            if text and anchor["href"]:
                parts.append(f"[{text}]({anchor['href']})\n\n")

        for lst in soup.find_all(["ul", "ol"]):
            ordered = lst.name == "ol"
            for index, item in enumerate(lst.find_all("li")):
                text = _collapse(item.get_text(" "))
                if text:
                    bullet = f"{index + 1}. " if ordered else "- "
                    parts.append(f"{bullet}{text}\n")
            parts.append("\n")

        markdown = "".join(parts)
        if len(markdown.strip()) < MIN_MARKDOWN_LENGTH:
            return self.to_text(soup)
        return markdown.strip()
