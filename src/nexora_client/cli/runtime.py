"""
Shared helpers for CLI commands: configuration and logging setup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from nexora_client.core.config import AppConfig, ConfigError, load_app_config
from nexora_client.core.logging import setup_logging

err_console = Console(stderr=True)


def load_config_or_exit(config_path: Optional[Path] = None) -> AppConfig:
    """Load app configuration and set up logging, exiting with 1 on bad config."""
    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading configuration:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    return config
