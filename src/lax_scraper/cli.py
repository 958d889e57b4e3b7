"""Lacrosse scraper CLI using Typer."""

import asyncio
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from .config import AppSettings, get_settings
from .errors import CriticalExtractionError
from .factory import available_sources, build_extractor, build_manifest_store, validate_seasons
from .lax_logging import configure_logging, get_logger, get_run_id
from .seasons import LEAGUE_SEASONS, get_active_leagues, get_all_active_leagues
from .staleness import ExtractOptions, normalize_options

app = typer.Typer(help="Incremental lacrosse stats extraction CLI")
console = Console()


def _settings(output_dir: Optional[Path]) -> AppSettings:
    settings = get_settings()
    if output_dir is not None:
        settings = settings.model_copy(update={"OUTPUT_DIR": output_dir})
    return settings


def _resolve_sources(source: str) -> List[str]:
    if source == "all":
        return available_sources()
    if source not in available_sources():
        typer.echo(
            f"Error: unknown source '{source}' (choose from: {', '.join(available_sources())}, all)",
            err=True,
        )
        raise typer.Exit(1)
    return [source]


@app.command()
def extract(
    source: Annotated[str, typer.Option(help="Source to extract: nll, pll or all")] = "all",
    seasons: Annotated[Optional[str], typer.Option("--seasons", help="Comma-separated season keys (default: every known season)")] = None,
    force: Annotated[bool, typer.Option("--force", help="Re-extract everything, ignoring the manifest")] = False,
    incremental: Annotated[bool, typer.Option("--incremental", help="Re-extract stale current-season data only")] = False,
    max_age_hours: Annotated[Optional[float], typer.Option("--max-age-hours", help="Re-extract entities older than this")] = None,
    no_details: Annotated[bool, typer.Option("--no-details", help="Skip per-item detail fan-outs")] = False,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", help="Override OUTPUT_DIR")] = None,
):
    """Extract source data into per-season JSON files."""

    if force and incremental:
        typer.echo("Error: Cannot specify both --force and --incremental", err=True)
        raise typer.Exit(1)

    sources = _resolve_sources(source)
    season_list = [s.strip() for s in seasons.split(",") if s.strip()] if seasons else None
    if season_list:
        for name in sources:
            try:
                validate_seasons(name, season_list)
            except ValueError as e:
                typer.echo(f"Error: {e}", err=True)
                raise typer.Exit(1)
    options = normalize_options(force=force, incremental=incremental, max_age_hours=max_age_hours)

    settings = _settings(output_dir)
    configure_logging(settings)
    asyncio.run(_run_extract(
        sources=sources,
        seasons=season_list,
        options=options,
        include_details=not no_details,
        settings=settings,
    ))


async def _run_extract(
    sources: List[str],
    seasons: Optional[List[str]],
    options: ExtractOptions,
    include_details: bool,
    settings: AppSettings,
):
    """Execute extraction for each source in turn."""
    logger = get_logger(__name__)
    mode = options.mode.value if options.mode else "skip-existing"
    typer.echo(f"🥍 Starting extraction ({mode}) for: {', '.join(sources)}")

    for name in sources:
        extractor = build_extractor(name, settings, include_details=include_details)
        try:
            async with extractor:
                manifest = await extractor.extract_all(options, seasons=seasons)
        except CriticalExtractionError as e:
            logger.error(
                "Extraction aborted",
                source=e.source,
                season=e.season_key,
                entity=e.entity,
                error=str(e.error),
                run_id=get_run_id(),
            )
            typer.echo(f"❌ {name.upper()} extraction aborted: {e}", err=True)
            raise typer.Exit(1)

        typer.echo(f"✅ {name.upper()} complete (last run: {manifest.last_run or 'never'})")

    typer.echo("\n🎉 Extraction completed successfully!")


@app.command()
def status(
    source: Annotated[str, typer.Option(help="Source to report: nll, pll or all")] = "all",
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw manifest as JSON")] = False,
    output_dir: Annotated[Optional[Path], typer.Option("--output-dir", help="Override OUTPUT_DIR")] = None,
):
    """Show the extraction manifest for one or all sources."""
    settings = _settings(output_dir)

    for name in _resolve_sources(source):
        store = build_manifest_store(name, settings)
        manifest = store.load()

        if as_json:
            typer.echo(store.render_status(manifest, as_json=True))
            continue

        table = Table(title=f"{name.upper()} extraction status (last run: {manifest.last_run or 'never'})")
        table.add_column("Season", style="cyan")
        table.add_column("Entity")
        table.add_column("Extracted")
        table.add_column("Count", justify="right")
        table.add_column("Timestamp")
        for row in store.status_rows(manifest):
            table.add_row(
                row["season"],
                row["entity"],
                "[green]✓[/green]" if row["extracted"] else "[red]✗[/red]",
                str(row["count"]),
                row["timestamp"] or "-",
            )
        console.print(table)


@app.command("active-leagues")
def active_leagues(
    on: Annotated[Optional[str], typer.Option("--on", help="Date to check (YYYY-MM-DD), default today")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="List every non-historical league")] = False,
):
    """List leagues currently in season."""
    if show_all:
        leagues = get_all_active_leagues()
    else:
        try:
            day = date.fromisoformat(on) if on else None
        except ValueError:
            typer.echo(f"Error: invalid date '{on}' (expected YYYY-MM-DD)", err=True)
            raise typer.Exit(1)
        leagues = get_active_leagues(day)

    if not leagues:
        typer.echo("No leagues in season")
        return

    for league in leagues:
        season = LEAGUE_SEASONS[league]
        typer.echo(
            f"{league}: {season.start.month:02d}-{season.start.day:02d} "
            f"to {season.end.month:02d}-{season.end.day:02d}"
        )


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
