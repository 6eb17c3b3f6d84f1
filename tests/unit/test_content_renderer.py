"""
Tests for page content rendering.
"""

from sponge.config import PageContentFormat
from sponge.extraction.content_renderer import ContentRenderer

ARTICLE = """
<html>
<head><style>body { color: red; }</style></head>
<body>
  <script>alert('x')</script>
  <noscript>Enable JavaScript</noscript>
  <h1>Annual Reports</h1>
  <p>Every report the organisation has published since it was founded, in one place.</p>
  <h2>Downloads</h2>
  <ul><li>2023 report</li><li>2022 report</li></ul>
  <a href="/reports/2023.pdf">Download 2023</a>
</body>
</html>
"""


class TestContentRenderer:
    """Tests for ContentRenderer."""

    def test_text_strips_scripts_and_styles(self) -> None:
        """Test plain text rendering."""
        text = ContentRenderer().render(ARTICLE, PageContentFormat.TEXT)

        assert "Annual Reports" in text
        assert "alert" not in text
        assert "color: red" not in text
        assert "Enable JavaScript" not in text
        assert "\n" not in text

    def test_html_keeps_markup(self) -> None:
        """Test cleaned HTML rendering."""
        html = ContentRenderer().render(ARTICLE, "html")

        assert "<h1>Annual Reports</h1>" in html
        assert "<script>" not in html

    def test_markdown_structure(self) -> None:
        """Test markdown headings, links and lists."""
        markdown = ContentRenderer().render(ARTICLE, PageContentFormat.MARKDOWN)

        assert markdown.startswith("# Annual Reports")
        assert "## Downloads" in markdown
        assert "[Download 2023](/reports/2023.pdf)" in markdown
        assert "- 2023 report" in markdown

    def test_short_markdown_falls_back_to_text(self) -> None:
        """Test the plain text fallback for thin pages."""
        html = "<html><body><div>Only a short line of text.</div></body></html>"

        markdown = ContentRenderer().render(html, PageContentFormat.MARKDOWN)

        assert markdown == "Only a short line of text."
