"""
Tests for the command line interface.
"""

from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from sponge import __main__ as cli_module
from sponge.__main__ import cli
from sponge.config import EstimationConfig
from sponge.models import Confidence, EstimationResult


class TestCli:
    """Tests for the sponge command group."""

    def test_help_lists_commands(self) -> None:
        """Test that both commands are registered."""
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "crawl" in result.output
        assert "estimate" in result.output

    def test_invalid_start_url(self, tmp_path: Path) -> None:
        """Test that configuration problems are reported before any request."""
        result = CliRunner().invoke(
            cli, ["crawl", "ftp://example.com/", "--output", str(tmp_path / "out")]
        )

        assert result.exit_code == 2
        assert "Invalid start URL format" in result.output

    def test_estimate_uses_configured_user_agent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that SPONGE_USER_AGENT reaches the estimator."""
        seen: list[EstimationConfig] = []

        class RecordingEstimator:
            def __init__(self, config: EstimationConfig, **kwargs: Any):
                seen.append(config)

            async def estimate(self) -> EstimationResult:
                return EstimationResult(
                    estimated_total=3,
                    discovered_urls=3,
                    pagination_detected=False,
                    sitemap_found=False,
                    confidence=Confidence.MEDIUM,
                )

        monkeypatch.setenv("SPONGE_USER_AGENT", "AcmeBot/2.0")
        monkeypatch.setattr(cli_module, "PageEstimator", RecordingEstimator)

        result = CliRunner().invoke(cli, ["estimate", "https://example.com/"])

        assert result.exit_code == 0
        assert seen[0].user_agent == "AcmeBot/2.0"
        assert "Estimated total" in result.output
