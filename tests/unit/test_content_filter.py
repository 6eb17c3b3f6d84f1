"""
Tests for URL and content filtering.
"""

import pytest

from sponge.config import CrawlConfig
from sponge.core.content_filter import ContentFilter, media_type
from sponge.models import ResourceKind


def make_filter(**overrides) -> ContentFilter:
    return ContentFilter.from_config(CrawlConfig(start_url="https://example.com/", **overrides))


class TestShouldCrawl:
    """Tests for crawl decisions."""

    def test_same_host_allowed(self) -> None:
        """Test that the seed host is crawlable."""
        assert make_filter().should_crawl("https://example.com/about")

    def test_subdomain_allowed_when_staying_on_domain(self) -> None:
        """Test that subdomains of the seed host count as on-domain."""
        assert make_filter().should_crawl("https://docs.example.com/guide")

    def test_other_host_rejected_when_staying_on_domain(self) -> None:
        """Test that off-domain hosts are rejected."""
        assert not make_filter().should_crawl("https://other.org/")
        assert not make_filter().should_crawl("https://notexample.com/")

    def test_other_host_allowed_without_stay_on_domain(self) -> None:
        """Test that stay_on_domain=False opens the crawl."""
        assert make_filter(stay_on_domain=False).should_crawl("https://other.org/")

    def test_allowed_domains_take_precedence(self) -> None:
        """Test that an allow-list replaces the seed-host rule."""
        content_filter = make_filter(allowed_domains=["partner.org"])

        assert content_filter.should_crawl("https://cdn.partner.org/x")
        assert not content_filter.should_crawl("https://example.com/")

    def test_blocked_domains_match_substrings(self) -> None:
        """Test that blocked domains reject any host containing them."""
        content_filter = make_filter(blocked_domains=["ads."])

        assert not content_filter.should_crawl("https://ads.example.com/banner")
        assert content_filter.should_crawl("https://www.example.com/")

    @pytest.mark.parametrize(
        "url",
        [
            "mailto:someone@example.com",
            "javascript:void(0)",
            "ftp://example.com/file",
            "https://example.com/static/site.css",
            "https://example.com/app.js",
            "https://example.com/page#section",
            "not a url",
        ],
    )
    def test_ignored_urls(self, url: str) -> None:
        """Test that non-crawlable URLs are rejected."""
        assert not make_filter().should_crawl(url)

    def test_should_follow_excludes_documents(self) -> None:
        """Test that documents are crawlable but not followed as pages."""
        content_filter = make_filter()

        assert content_filter.should_crawl("https://example.com/report.pdf")
        assert not content_filter.should_follow("https://example.com/report.pdf")
        assert content_filter.should_follow("https://example.com/reports")


class TestClassification:
    """Tests for document and HTML classification."""

    def test_empty_type_list_disables_documents(self) -> None:
        """Test that no URL is a document when no file types are configured."""
        content_filter = make_filter(allowed_file_types=[])

        assert not content_filter.is_document("https://example.com/a.pdf")
        assert not content_filter.is_document("https://example.com/a", "application/pdf")

    def test_extension_match_is_case_insensitive(self) -> None:
        """Test path extension matching."""
        content_filter = make_filter(allowed_file_types=["pdf"])

        assert content_filter.is_document("https://example.com/A.PDF")
        assert not content_filter.is_document("https://example.com/a.docx")

    def test_content_type_fallback(self) -> None:
        """Test that the content type is used when the path has no extension."""
        content_filter = make_filter(allowed_file_types=["pdf"])

        assert content_filter.is_document("https://example.com/get?id=1", "application/pdf; q=1")
        assert not content_filter.is_document("https://example.com/get?id=1", "text/html")

    def test_classify(self) -> None:
        """Test the tagged classification."""
        content_filter = make_filter(allowed_file_types=["pdf"])

        assert content_filter.classify("https://example.com/", "text/html; charset=utf-8").is_html
        doc = content_filter.classify("https://example.com/x", "application/pdf")
        assert doc.is_document
        assert doc.extension == "pdf"
        assert content_filter.classify("https://example.com/x", "video/mp4").kind == ResourceKind.UNKNOWN

    def test_is_pagination_url(self) -> None:
        """Test numeric page parameter detection."""
        content_filter = make_filter()

        assert content_filter.is_pagination_url("https://example.com/list?page=2")
        assert not content_filter.is_pagination_url("https://example.com/list?page=last")
        assert not content_filter.is_pagination_url("https://example.com/list")

    def test_media_type(self) -> None:
        """Test Content-Type parameter stripping."""
        assert media_type("Text/HTML; charset=utf-8") == "text/html"
        assert media_type(None) == ""


class TestSizeAndNaming:
    """Tests for size limits and file names."""

    def test_file_size_bounds(self) -> None:
        """Test size checks, with unknown sizes allowed."""
        content_filter = make_filter(min_file_size=10, max_file_size=100)

        assert content_filter.is_file_size_allowed(None)
        assert content_filter.is_file_size_allowed("50")
        assert content_filter.is_file_size_allowed(10)
        assert content_filter.is_file_size_allowed(100)
        assert not content_filter.is_file_size_allowed(9)
        assert not content_filter.is_file_size_allowed(101)

    def test_sanitize_keeps_last_extension(self) -> None:
        """Test that a dotted file name keeps its real extension."""
        name = make_filter().sanitize_filename("https://x.com/a/b.c.pdf")

        assert name.endswith(".pdf")
        assert "/" not in name
        assert "\\" not in name

    def test_sanitize_replaces_unsafe_characters(self) -> None:
        """Test that unsafe characters collapse to underscores."""
        name = make_filter().sanitize_filename("https://x.com/files/annual%20report%20(final).pdf")

        assert name == "annual_report_final_.pdf"

    def test_sanitize_adds_extension_from_content_type(self) -> None:
        """Test that an extension-less path gets one from the content type."""
        name = make_filter().sanitize_filename("https://x.com/download", "application/pdf")

        assert name == "download.pdf"

    def test_sanitize_truncates_long_names(self) -> None:
        """Test the file name length limit."""
        name = make_filter().sanitize_filename("https://x.com/" + "a" * 400 + ".pdf")

        assert len(name) == 255
        assert name.endswith(".pdf")

    def test_get_file_extension(self) -> None:
        """Test extension resolution order."""
        content_filter = make_filter(allowed_file_types=["pdf", "csv"])

        assert content_filter.get_file_extension("https://x.com/a.csv") == "csv"
        assert content_filter.get_file_extension("https://x.com/a", "application/pdf") == "pdf"
        assert content_filter.get_file_extension("https://x.com/a") == "unknown"
