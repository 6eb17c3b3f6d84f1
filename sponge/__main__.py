"""
CLI entry point for the Sponge crawler.

Usage:
    python -m sponge crawl https://example.com --output ./downloads

    # Discover only, then write a report:
    python -m sponge crawl https://example.com --dry-run --report report.json

    # Estimate site size before crawling:
    python -m sponge estimate https://example.com
"""

import asyncio
import signal
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from sponge.config import (
    CrawlConfig,
    EstimationConfig,
    OutputLayout,
    PageContentFormat,
    load_config,
)
from sponge.core.crawler import CrawlOrchestrator
from sponge.core.estimator import PageEstimator
from sponge.exceptions import ConfigurationError, SetupError
from sponge import __version__
from sponge.utils import metrics
from sponge.utils.logging import setup_logging

console = Console()


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (default: from SPONGE_LOG_LEVEL or INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "console"]),
    default=None,
    help="Log output format (default: from SPONGE_LOG_FORMAT or console).",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_format: str | None) -> None:
    """Sponge - polite site crawler and document collector."""
    settings = load_config()
    setup_logging(
        level=log_level or settings.log_level,
        format_type=log_format or settings.log_format,
    )
    metrics.SPONGE_INFO.info({"version": __version__, "user_agent": settings.user_agent})
    ctx.obj = settings


@cli.command()
@click.argument("url")
@click.option("--output", "-o", type=click.Path(), default=None, help="Output directory.")
@click.option("--max-depth", "-d", type=int, default=None, help="Maximum link depth (default: 3).")
@click.option("--max-pages", "-p", type=int, default=None, help="Maximum pages to visit (default: 1000).")
@click.option("--concurrency", "-c", type=int, default=None, help="Concurrent fetches, 1-20 (default: 5).")
@click.option("--delay", type=float, default=None, help="Seconds between dispatches (default: 1.0).")
@click.option("--random-delay/--fixed-delay", default=None, help="Jitter the dispatch delay.")
@click.option(
    "--file-type",
    "-t",
    "file_types",
    multiple=True,
    help="Document extension to collect. Can be specified multiple times.",
)
@click.option("--allowed-domain", "allowed_domains", multiple=True, help="Restrict crawling to a domain.")
@click.option("--blocked-domain", "blocked_domains", multiple=True, help="Never crawl hosts containing this.")
@click.option("--stay-on-domain/--any-domain", default=None, help="Stay on the seed host (default: stay).")
@click.option("--respect-robots/--ignore-robots", default=None, help="Respect robots.txt (default: respect).")
@click.option(
    "--layout",
    type=click.Choice([layout.value for layout in OutputLayout]),
    default=None,
    help="Download layout (default: mirror).",
)
@click.option("--save-content/--no-save-content", default=None, help="Save rendered page content.")
@click.option(
    "--content-format",
    type=click.Choice([fmt.value for fmt in PageContentFormat]),
    default=None,
    help="Page content format (default: text).",
)
@click.option("--overwrite/--no-overwrite", default=None, help="Overwrite existing files.")
@click.option("--download/--dry-run", default=True, help="Download discovered documents (default: download).")
@click.option("--report", type=click.Path(), default=None, help="Write the JSON crawl report here.")
@click.pass_obj
def crawl(settings: Any, url: str, file_types: tuple[str, ...], **options: Any) -> None:
    """
    Crawl URL and collect documents.

    Example:
        sponge crawl https://example.com -o ./downloads -t pdf -t docx
    """
    download = options.pop("download")
    report = options.pop("report")

    overrides = {
        "output_dir": options.pop("output"),
        "max_depth": options.pop("max_depth"),
        "max_pages": options.pop("max_pages"),
        "concurrency": options.pop("concurrency"),
        "delay": options.pop("delay"),
        "random_delay": options.pop("random_delay"),
        "stay_on_domain": options.pop("stay_on_domain"),
        "respect_robots_txt": options.pop("respect_robots"),
        "save_page_content": options.pop("save_content"),
        "overwrite_existing": options.pop("overwrite"),
        "allowed_domains": list(options.pop("allowed_domains")) or None,
        "blocked_domains": list(options.pop("blocked_domains")) or None,
        "allowed_file_types": list(file_types) or None,
    }
    layout = options.pop("layout")
    if layout:
        overrides["layout"] = OutputLayout(layout)
    content_format = options.pop("content_format")
    if content_format:
        overrides["page_content_format"] = PageContentFormat(content_format)

    config = CrawlConfig.from_settings(url, settings, **overrides)

    console.print("[bold blue]Sponge crawler[/bold blue]")
    console.print(f"Start URL: {config.start_url}")
    console.print(f"Output: {config.output_dir}")
    console.print(f"Max depth: {config.max_depth}  Max pages: {config.max_pages}")
    console.print(f"Concurrency: {config.concurrency}  Delay: {config.delay}s")
    if not config.respect_robots_txt:
        console.print("[yellow]Warning: robots.txt will be ignored![/yellow]")

    try:
        snapshot, documents = asyncio.run(_run_crawl(config, download, report))
    except ConfigurationError as e:
        console.print("[bold red]Invalid configuration:[/bold red]")
        for error in e.details.get("errors", [e.message]):
            console.print(f"  - {error}")
        sys.exit(2)
    except SetupError as e:
        console.print(f"[bold red]Setup failed: {e.message}[/bold red]")
        sys.exit(1)

    _print_summary(snapshot, documents)
    if snapshot["status"] == "aborted":
        console.print("\n[yellow]Crawl aborted by user[/yellow]")


async def _run_crawl(
    config: CrawlConfig,
    download: bool,
    report: str | None,
) -> tuple[dict[str, Any], list[Any]]:
    """Run a crawl session, then optionally download and report."""
    async with CrawlOrchestrator(config) as orchestrator:
        _install_abort_handler(orchestrator)

        console.print("\n[green]Starting crawl...[/green]\n")
        await orchestrator.crawl()

        if download and orchestrator.documents:
            console.print(f"\n[green]Downloading {len(orchestrator.documents)} documents...[/green]")
            await orchestrator.download_documents()

        if report:
            path = orchestrator.export_metadata(report)
            console.print(f"Report written to {path}")

        return orchestrator.status_snapshot(), orchestrator.get_documents()


def _install_abort_handler(orchestrator: CrawlOrchestrator) -> None:
    """Turn Ctrl-C into a cooperative abort."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.abort)
    except NotImplementedError:
        # no loop signal handlers on this platform; Ctrl-C raises instead
        pass


def _print_summary(snapshot: dict[str, Any], documents: list[Any]) -> None:
    stats = snapshot["stats"]

    table = Table(title=f"Crawl {snapshot['status']}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Pages visited", str(stats["pages_visited"]))
    table.add_row("Documents found", str(stats["documents_found"]))
    table.add_row("Documents downloaded", str(stats["documents_downloaded"]))
    table.add_row("Errors", str(stats["errors"]))
    for reason, count in stats["skipped"].items():
        table.add_row(f"Skipped ({reason})", str(count))
    if stats["pagination_detected"]:
        table.add_row("Pagination pages", str(stats["total_pages_discovered"]))
    if stats["estimated_total_pages"]:
        table.add_row("Estimated total pages", str(stats["estimated_total_pages"]))
    console.print(table)

    failed = [doc for doc in documents if doc.error]
    if failed:
        console.print(f"\n[red]{len(failed)} downloads failed[/red]")
        for doc in failed[:10]:
            console.print(f"  {doc.url}: {doc.error}")


@cli.command()
@click.argument("url")
@click.option("--max-depth", "-d", type=int, default=3, help="Sample crawl depth (default: 3).")
@click.option("--max-sample-pages", type=int, default=50, help="Pages to sample (default: 50).")
@click.option("--timeout", type=float, default=10.0, help="Per-request timeout in seconds.")
@click.option("--max-duration", type=float, default=120.0, help="Overall deadline in seconds.")
@click.pass_obj
def estimate(
    settings: Any,
    url: str,
    max_depth: int,
    max_sample_pages: int,
    timeout: float,
    max_duration: float,
) -> None:
    """
    Estimate how many pages URL's site has.

    Example:
        sponge estimate https://example.com
    """
    config = EstimationConfig(
        url=url,
        max_depth=max_depth,
        timeout_seconds=timeout,
        max_sample_pages=max_sample_pages,
        max_duration_seconds=max_duration,
        user_agent=settings.user_agent,
    )
    result = asyncio.run(PageEstimator(config).estimate())

    table = Table(title=f"Estimate for {url}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Estimated total", str(result.estimated_total))
    table.add_row("Discovered URLs", str(result.discovered_urls))
    table.add_row("Sitemap found", "yes" if result.sitemap_found else "no")
    table.add_row("Pagination detected", "yes" if result.pagination_detected else "no")
    table.add_row("Confidence", result.confidence.value)
    console.print(table)

    if result.error:
        console.print(f"[yellow]Estimation fell back: {result.error}[/yellow]")
    for pattern in result.patterns[:5]:
        console.print(f"  {pattern}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
