"""CLI commands for the reports directory.

Usage:
    appealdesk reports list [--dir PATH] [--json]
    appealdesk reports path NAME [--dir PATH]
    appealdesk reports export OUTPUT [--dir PATH] [--force]
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from ..config import get_settings
from ..logging import setup_logging
from ..reports import FileSink, ReportError, ReportStore

dir_option = click.option(
    "--dir",
    "reports_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Reports directory (defaults to REPORTS_DIR from settings)",
)


def _build_store(reports_dir: Path | None) -> ReportStore:
    settings = get_settings()
    if reports_dir is not None:
        settings = settings.model_copy(update={"reports_dir": reports_dir})
    return ReportStore.from_settings(settings)


@click.group(name="reports")
def cli():
    """Report directory commands."""
    setup_logging()


@cli.command(name="list")
@dir_option
@click.option("--json", "as_json", is_flag=True, help="Print a JSON array")
def list_reports(reports_dir: Path | None, as_json: bool) -> None:
    """List the reports available for download."""
    store = _build_store(reports_dir)
    try:
        names = store.list_reports()
    except ReportError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(names, ensure_ascii=False))
        return

    if not names:
        click.echo(f"No reports in {store.reports_dir}")
        return
    for name in names:
        click.echo(name)
    click.echo(f"{len(names)} report(s) in {store.reports_dir}")


@cli.command(name="path")
@click.argument("name")
@dir_option
def report_path(name: str, reports_dir: Path | None) -> None:
    """Resolve NAME to the file that would be served for it."""
    store = _build_store(reports_dir)
    try:
        click.echo(str(store.resolve_report_path(name)))
    except ReportError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command(name="export")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@dir_option
@click.option("--force", is_flag=True, help="Overwrite OUTPUT if it exists")
def export_reports(output: Path, reports_dir: Path | None, force: bool) -> None:
    """Bundle every report into the ZIP file OUTPUT."""
    if output.exists() and not force:
        click.echo(f"Error: {output} already exists (use --force to overwrite)", err=True)
        sys.exit(1)

    store = _build_store(reports_dir)
    try:
        written = asyncio.run(_export(store, output))
    except ReportError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Wrote {written} bytes to {output}")


async def _export(store: ReportStore, output: Path) -> int:
    output.parent.mkdir(parents=True, exist_ok=True)
    async with FileSink(output) as sink:
        return await store.stream_all_reports_as_zip(sink)
