"""
Entity commands for browsing inventory collections.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from nexora_client.cli.runtime import load_config_or_exit
from nexora_client.core.context import open_client
from nexora_client.core.repository import RepositoryError

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Browse warehouses, products and stock",
    no_args_is_help=True,
)

# Columns shown per collection; anything else falls back to id/name
COLUMNS: dict[str, list[str]] = {
    "warehouses": ["uuid", "code", "name", "city", "country", "active"],
    "products": ["uuid", "code", "name", "category", "price", "active"],
    "stocks": ["uuid", "product", "warehouse", "quantity", "min_stock_level", "low_stock"],
}
DEFAULT_COLUMNS = ["uuid", "id", "name"]

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to app.yaml",
)


def _as_dict(item: Any) -> dict[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    if isinstance(item, dict):
        return item
    return {"value": item}


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, dict):
        return str(value.get("name") or value.get("code") or value.get("uuid") or "")
    return str(value)


def _render_table(collection: str, items: list[Any]) -> Table:
    columns = COLUMNS.get(collection, DEFAULT_COLUMNS)
    table = Table(title=collection.capitalize(), show_header=True, header_style="bold magenta")
    for column in columns:
        table.add_column(column, style="cyan" if column == columns[0] else None)

    for item in items:
        row = _as_dict(item)
        table.add_row(*(_cell(row.get(column)) for column in columns))
    return table


async def _list(collection: str, config_path: Path | None, search: str | None, active: bool) -> list[Any]:
    config = load_config_or_exit(config_path)
    async with open_client(config) as ctx:
        repository = ctx.repository(collection)
        if search:
            return await repository.search(search)
        if active:
            return await repository.find_active()
        return await repository.find_all()


async def _get(collection: str, entity_id: str, config_path: Path | None) -> Any:
    config = load_config_or_exit(config_path)
    async with open_client(config) as ctx:
        return await ctx.repository(collection).find_by_id(entity_id)


def _fail(error: Exception) -> NoReturn:
    if isinstance(error, RepositoryError):
        err_console.print(f"[red]{error.message}[/red] [dim]({error.status} {error.path})[/dim]")
    elif isinstance(error, KeyError) and error.args:
        err_console.print(f"[red]{error.args[0]}[/red]")
    else:
        err_console.print(f"[red]{error}[/red]")
    raise typer.Exit(1)


@app.command("list")
def list_entities(
    collection: str = typer.Argument(..., help="warehouses, products or stocks"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Search query"),
    active: bool = typer.Option(False, "--active", help="Only active entities"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """List entities of a collection.

    Examples:
        nexora entities list warehouses
        nexora entities list products --search bolt
    """
    try:
        items = asyncio.run(_list(collection, config_path, search, active))
    except (RepositoryError, KeyError) as e:
        _fail(e)

    if as_json:
        console.print_json(json.dumps([_as_dict(item) for item in items], default=str))
        return

    if not items:
        console.print(f"[dim]No {collection} found.[/dim]")
        return
    console.print(_render_table(collection, items))


@app.command("get")
def get_entity(
    collection: str = typer.Argument(..., help="warehouses, products or stocks"),
    entity_id: str = typer.Argument(..., help="Entity id"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Show one entity as JSON."""
    try:
        item = asyncio.run(_get(collection, entity_id, config_path))
    except (RepositoryError, KeyError) as e:
        _fail(e)

    console.print_json(json.dumps(_as_dict(item), default=str))
