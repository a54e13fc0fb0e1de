"""
Export commands: request a job and follow it, list finished exports,
download files.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from nexora_client.cli.runtime import load_config_or_exit
from nexora_client.core.context import open_client
from nexora_client.core.export import (
    ExportCategory,
    ExportedFile,
    ExportError,
    ExportSnapshot,
)
from nexora_client.core.transport import TransportFailure

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Request and download data exports",
    no_args_is_help=True,
)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to app.yaml",
)

STATUS_STYLES = {
    "PENDING": "yellow",
    "PROCESSING": "cyan",
    "COMPLETED": "green",
    "FAILED": "red",
    "TIMEOUT": "red",
}


def _print_snapshot(snapshot: ExportSnapshot) -> None:
    if snapshot.loading:
        console.print("[dim]Requesting export...[/dim]")
    elif snapshot.current_status is not None:
        status = snapshot.current_status.value
        style = STATUS_STYLES.get(status, "white")
        console.print(f"  [{style}]{status}[/{style}] [dim]{snapshot.current_job_id or ''}[/dim]")
    if snapshot.error:
        err_console.print(f"[red]{snapshot.error}[/red]")


def _fail(error: Exception) -> NoReturn:
    if isinstance(error, TransportFailure):
        err_console.print(f"[red]{error}[/red] [dim]({error.status_code} {error.url})[/dim]")
    else:
        err_console.print(f"[red]{error}[/red]")
    raise typer.Exit(1)


async def _run(
    category: ExportCategory,
    output: Path | None,
    config_path: Path | None,
) -> tuple[ExportedFile, Path | None]:
    config = load_config_or_exit(config_path)
    async with open_client(config) as ctx:
        exports = ctx.exports
        state = exports.create_state(category)
        state.subscribe(_print_snapshot)
        try:
            exported = await exports.export_and_wait(category, state)
            saved = None
            if output is not None:
                saved = await exports.download_export(exported.job_id, output)
            return exported, saved
        finally:
            exports.teardown(state)


async def _jobs(category: ExportCategory, config_path: Path | None) -> list[ExportedFile]:
    config = load_config_or_exit(config_path)
    async with open_client(config) as ctx:
        exports = ctx.exports
        state = exports.create_state(category)
        try:
            return await exports.load_existing_export_jobs(category, state)
        finally:
            exports.teardown(state)


async def _download(job_id: str, output: Path, config_path: Path | None) -> Path:
    config = load_config_or_exit(config_path)
    async with open_client(config) as ctx:
        return await ctx.exports.download_export(job_id, output)


def _parse_category(value: str) -> ExportCategory:
    try:
        return ExportCategory.parse(value)
    except ValueError as e:
        choices = ", ".join(c.value.lower() for c in ExportCategory)
        raise typer.BadParameter(f"{e} (expected one of: {choices})") from None


@app.command("run")
def run_export(
    category: str = typer.Argument(..., help="warehouse, stock or product"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="File or directory to save the export to",
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Request an export and wait for it to finish.

    Examples:
        nexora export run product
        nexora export run stock -o exports/
    """
    parsed = _parse_category(category)
    try:
        exported, saved = asyncio.run(_run(parsed, output, config_path))
    except (ExportError, TransportFailure) as e:
        _fail(e)

    console.print(f"[green]Export ready:[/green] {exported.file_name} [dim]({exported.job_id})[/dim]")
    if saved is not None:
        console.print(f"[green]Saved to[/green] {saved}")


@app.command("jobs")
def list_jobs(
    category: str = typer.Argument(..., help="warehouse, stock or product"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """List completed exports of a category."""
    parsed = _parse_category(category)
    files = asyncio.run(_jobs(parsed, config_path))

    if not files:
        console.print(f"[dim]No completed {parsed.value.lower()} exports.[/dim]")
        return

    table = Table(title=f"{parsed.value.capitalize()} exports", show_header=True, header_style="bold magenta")
    table.add_column("Job", style="cyan")
    table.add_column("File")
    table.add_column("Created")
    for exported in files:
        table.add_row(exported.job_id, exported.file_name, exported.created_at.isoformat(timespec="seconds"))
    console.print(table)


@app.command("download")
def download(
    job_id: str = typer.Argument(..., help="Export job id"),
    output: Path = typer.Option(
        Path("."),
        "--output",
        "-o",
        help="File or directory to save the export to",
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Download the file of a completed export."""
    try:
        saved = asyncio.run(_download(job_id, output, config_path))
    except (ExportError, TransportFailure) as e:
        _fail(e)

    console.print(f"[green]Saved to[/green] {saved}")
