"""
Nexora CLI - Main entry point.

Terminal access to the inventory API: browse entities, request exports and
follow them to completion, download exported files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from nexora_client import __app_name__, __version__
from nexora_client.core.config import validate_app_config_file

# Load environment variables (NEXORA_API_URL, NEXORA_CONFIG...) from .env
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name=__app_name__,
    help="Inventory API client: entities and data exports",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Nexora - Inventory API client."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import entities, export  # noqa: E402

app.add_typer(entities.app, name="entities", help="Browse warehouses, products and stock")
app.add_typer(export.app, name="export", help="Request and download data exports")


# =============================================================================
# Configuration Commands
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Create a default configs/app.yaml."""
    app_config_path = Path("configs/app.yaml")
    if app_config_path.exists() and not force:
        err_console.print(f"[yellow]{app_config_path} already exists[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)

    _create_default_app_config(app_config_path)

    console.print(Panel.fit(
        "[bold green]OK - configuration created[/bold green]\n\n"
        "  - [cyan]configs/app.yaml[/cyan] - API origin, repositories, export polling\n\n"
        "Next steps:\n"
        "  1. Point it at your API: [yellow]NEXORA_API_URL=https://host/api/v1[/yellow]\n"
        "  2. List warehouses: [yellow]nexora entities list warehouses[/yellow]\n"
        "  3. Export products: [yellow]nexora export run product -o exports/[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


@app.command()
def check(
    config_path: Path = typer.Argument(
        Path("configs/app.yaml"),
        help="Configuration file to validate",
    ),
) -> None:
    """Validate a configuration file without contacting the API."""
    problems = validate_app_config_file(config_path)
    if problems:
        err_console.print(f"[red]{config_path} has {len(problems)} problem(s):[/red]")
        for problem in problems:
            err_console.print(f"  - {problem}", markup=False)
        raise typer.Exit(1)
    console.print(f"[green]{config_path} is valid[/green]")


def _create_default_app_config(path: Path) -> None:
    """Create default app.yaml configuration."""
    default_config = """\
# Nexora client configuration
# Values support ${VAR} and ${VAR:-default} expansion.

api:
  base_url: ${NEXORA_API_URL:-http://localhost:8080/api/v1}
  timeout_seconds: 30
  headers:
    Authorization: ${NEXORA_AUTH_HEADER:-}

export:
  base_path: inventory/export
  poll_interval_ms: 2000
  watchdog_timeout_ms: 300000
  status_retry_attempts: 0

logging:
  level: INFO
  file: logs/nexora.log
  json_format: true
  rich_console: true

repositories:
  warehouses:
    base_url: inventory/warehouses
    entity_name: Warehouse
  products:
    base_url: inventory/products
    entity_name: Product
  stocks:
    base_url: inventory/stocks
    entity_name: Stock
"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config, encoding="utf-8")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
