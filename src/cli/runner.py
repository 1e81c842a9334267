# src/cli/runner.py

"""Headless CLI search runner built on the async orchestrator."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from src.config.settings import PipelineConfig
from src.models.aggregation_result import AggregationResult
from src.models.product import RawProduct, ScoredProduct
from src.services.result_assembler import SETUP_MESSAGES
from src.services.search_orchestrator import SearchOrchestrator

logger = logging.getLogger("shopmate.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_table(products: list[RawProduct]) -> None:
    """Render a Rich table of ranked products to stdout."""
    table = Table(
        title="Search Results",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Off", justify="right")
    table.add_column("Rating", justify="center")
    table.add_column("Store", style="magenta")
    table.add_column("CRS", justify="right")
    table.add_column("Link", overflow="fold", style="dim")

    for idx, p in enumerate(products, 1):
        crs = f"{p.crs:.2f}" if isinstance(p, ScoredProduct) else "-"
        table.add_row(
            str(idx),
            p.title[:60],
            f"₹{p.price:,}",
            f"{p.discount}%" if p.discount else "-",
            f"{p.rating:.1f}" if p.rating else "-",
            p.store,
            crs,
            p.link,
        )

    Console().print(table)


def _print_status(result: AggregationResult) -> None:
    """Write the per-source breakdown and summary to stderr."""
    meta = result.metadata
    for report in meta.sources:
        if report.error:
            _err.print(f"[red]{report.name}: {report.error}[/red]")
        else:
            _err.print(
                f"[dim]{report.name}: {report.count} products "
                f"({report.kind})[/dim]"
            )

    ranked = "AI ranked" if meta.ranked_by_ai else "price sorted"
    _err.print(
        f"[green]✓ {meta.total_results} products, {ranked}, "
        f"{meta.fetch_time_ms}ms[/green]"
    )
    if result.summary:
        _err.print(f"[bold]{result.summary}[/bold]")


async def cli_search(
    query: str,
    output_format: str,
    config: PipelineConfig,
) -> int:
    """Run a headless search and return an exit code (0=ok, 1=empty)."""
    _err.print(f"[bold]Searching:[/bold] {query}")

    orchestrator = SearchOrchestrator(config)
    result = await orchestrator.search(query)

    if not result.items:
        message = result.summary or "No products found."
        colour = "red" if message in SETUP_MESSAGES[:2] else "yellow"
        _err.print(f"[{colour}]{message}[/{colour}]")
        for report in result.metadata.sources:
            if report.error:
                _err.print(f"[red]{report.name}: {report.error}[/red]")
        return 1

    _print_status(result)

    if output_format == "table":
        _print_table(result.items)
    else:
        json.dump(
            result.to_dict(),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")

    logger.info(
        "CLI search '%s' returned %d products",
        query,
        len(result.items),
    )
    return 0
