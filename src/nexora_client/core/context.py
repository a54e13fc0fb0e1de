"""
Client wiring.

Builds the transport, repositories and export services described by an
AppConfig, and closes them together.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from nexora_client.core.config import AppConfig, load_app_config
from nexora_client.core.export import ExportJobClient, ExportOrchestrator
from nexora_client.core.repository import Repository, build_repositories
from nexora_client.core.transport import HttpTransport, Transport


@dataclass
class ClientContext:
    """Everything a consumer needs to talk to the inventory API."""

    config: AppConfig
    transport: Transport
    repositories: dict[str, Repository[Any]] = field(default_factory=dict)
    exports: ExportOrchestrator | None = None

    def repository(self, name: str) -> Repository[Any]:
        """Get a repository by collection name (warehouses, products, stocks...)."""
        try:
            return self.repositories[name]
        except KeyError:
            known = ", ".join(sorted(self.repositories)) or "none"
            raise KeyError(f"Unknown entity collection '{name}' (configured: {known})") from None

    async def close(self) -> None:
        await self.transport.close()


def build_context(config: AppConfig, transport: Transport | None = None) -> ClientContext:
    """Wire services for `config`.

    Args:
        config: Application configuration
        transport: Transport to use (default: HttpTransport from config.api)
    """
    if transport is None:
        transport = HttpTransport(
            timeout=config.api.timeout_seconds,
            default_headers=config.api.headers,
        )

    export_client = ExportJobClient(transport, config.api.base_url, config.export)
    return ClientContext(
        config=config,
        transport=transport,
        repositories=build_repositories(config, transport),
        exports=ExportOrchestrator(export_client, config.export),
    )


@asynccontextmanager
async def open_client(
    config: AppConfig | None = None,
    transport: Transport | None = None,
) -> AsyncIterator[ClientContext]:
    """Async context manager yielding a wired ClientContext.

    Usage:
        async with open_client() as ctx:
            warehouses = await ctx.repository("warehouses").find_all()
    """
    context = build_context(config or load_app_config(), transport)
    try:
        yield context
    finally:
        await context.close()
