# src/cli/runner.py

"""Headless CLI actions built on the same engine as the API."""

import json
import logging
import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from src.config.settings import Settings
from src.models.product import ProductRecord
from src.services.exceptions import ScrapeError
from src.services.health_checker import HealthChecker
from src.services.resilient_fetcher import ResilientFetcher
from src.services.search_aggregator import SearchAggregator, build_scrapers

logger = logging.getLogger("realtime_search.cli")

# Progress and errors go to stderr; stdout carries only the result
status = Console(stderr=True)


def resolve_sources(source_csv: str | None) -> list[dict[str, str]]:
    """Registry entries for the requested IDs, in the order requested.

    ``None`` selects every source.  Unknown IDs print the valid ones
    and exit with status 1.
    """
    registry = {entry["id"]: entry for entry in Settings.AVAILABLE_SOURCES}
    if source_csv is None:
        return list(Settings.AVAILABLE_SOURCES)

    wanted = [part.strip() for part in source_csv.split(",")]
    wanted = [part for part in wanted if part]
    missing = sorted(set(wanted) - set(registry))
    if missing:
        status.print(
            f"[red]Unknown source ID(s): {', '.join(missing)}. "
            f"Choose from: {', '.join(registry)}[/red]"
        )
        raise SystemExit(1)
    return [registry[part] for part in wanted]


def _emit_json(payload: dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _results_table(records: list[ProductRecord]) -> Table:
    table = Table(title="Realtime results", title_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Source", style="magenta")
    table.add_column("Title", max_width=60)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Link", overflow="fold", style="dim")
    for rank, record in enumerate(records, 1):
        table.add_row(
            str(rank),
            record.source.value,
            record.title,
            f"{record.price} {record.currency}".strip() or "-",
            record.url,
        )
    return table


async def cli_search(
    query: str,
    source_csv: str | None,
    output_format: str,
) -> int:
    """Aggregate *query* across sources; exit code 1 when nothing came back."""
    settings = Settings()
    sources = resolve_sources(source_csv)
    aggregator = SearchAggregator(
        build_scrapers(ResilientFetcher(settings=settings), settings, sources),
        settings,
    )

    status.print(
        f"[bold]{query}[/bold] [dim]via "
        f"{', '.join(s['label'] for s in sources)}[/dim]"
    )
    result = await aggregator.aggregate(query)

    for failure in result.errors:
        status.print(f"[red]{failure}[/red]")
    if not result.items:
        status.print("[yellow]No results.[/yellow]")
        return 1

    breakdown = " ".join(
        f"{sid}={count}" for sid, count in result.source_counts.items()
    )
    status.print(
        f"[green]{len(result.items)} results[/green] [dim]({breakdown}, "
        f"{result.deduplicated_count} duplicates dropped)[/dim]"
    )

    if output_format == "table":
        Console().print(_results_table(result.items))
    else:
        _emit_json(result.to_payload())
    return 0


async def run_probe(source_id: str, query: str) -> int:
    """Print one source's extraction diagnostics for *query* as JSON."""
    settings = Settings()
    scrapers = build_scrapers(
        ResilientFetcher(settings=settings),
        settings,
        resolve_sources(source_id),
    )

    try:
        report = await scrapers[source_id].probe(query)
    except ScrapeError as exc:
        logger.error("Probe %s for '%s' failed: %s", source_id, query, exc)
        status.print(
            f"[red]{source_id} probe failed after {exc.attempts} "
            f"attempt(s): {exc}[/red]"
        )
        return 1

    _emit_json({"probe": source_id, "q": query, **report})
    return 0


def run_health_check() -> int:
    """Show which proxy settings are present; exit code 1 if any is missing."""
    health = HealthChecker().check()

    table = Table(title="Rendering proxy", title_style="bold cyan")
    table.add_column("Variable", style="bold")
    table.add_column("Present", justify="center")
    table.add_column("Detail", style="dim")
    table.add_row(
        "PROXY_BASE",
        "[green]yes[/green]" if health.has_base else "[red]no[/red]",
        f"{health.endpoints} endpoint(s)",
    )
    table.add_row(
        "PROXY_AUTH",
        "[green]yes[/green]" if health.has_auth else "[red]no[/red]",
        "styles: " + (", ".join(health.auth_styles) or "none"),
    )
    Console().print(table)
    return 0 if health.ready else 1
