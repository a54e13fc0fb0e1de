"""
Inventory repositories.

Builders for the warehouse, product and stock collections. Callers receive
a Repository instance; nothing subclasses it.
"""

from __future__ import annotations

from typing import Any, Callable

from nexora_client.core.config.models import AppConfig, RepositoryConfig, default_repository_configs
from nexora_client.core.transport import Transport

from .base import Repository
from .entities import Product, Stock, Warehouse

ENTITY_MODELS: dict[str, type] = {
    "warehouses": Warehouse,
    "products": Product,
    "stocks": Stock,
}

DEFAULT_CONFIGS: dict[str, RepositoryConfig] = default_repository_configs()


def _build(
    name: str,
    transport: Transport,
    api_url: str,
    config: RepositoryConfig | None,
    clock: Callable[[], float] | None,
    overrides: dict[str, Any],
) -> Repository[Any]:
    config = config or DEFAULT_CONFIGS[name]
    if overrides:
        config = config.model_copy(update=overrides)
    return Repository(transport, config, api_url, model=ENTITY_MODELS[name], clock=clock)


def warehouse_repository(
    transport: Transport,
    api_url: str,
    config: RepositoryConfig | None = None,
    clock: Callable[[], float] | None = None,
    **overrides: Any,
) -> Repository[Warehouse]:
    """Repository for inventory/warehouses."""
    return _build("warehouses", transport, api_url, config, clock, overrides)


def product_repository(
    transport: Transport,
    api_url: str,
    config: RepositoryConfig | None = None,
    clock: Callable[[], float] | None = None,
    **overrides: Any,
) -> Repository[Product]:
    """Repository for inventory/products."""
    return _build("products", transport, api_url, config, clock, overrides)


def stock_repository(
    transport: Transport,
    api_url: str,
    config: RepositoryConfig | None = None,
    clock: Callable[[], float] | None = None,
    **overrides: Any,
) -> Repository[Stock]:
    """Repository for inventory/stocks."""
    return _build("stocks", transport, api_url, config, clock, overrides)


def build_repositories(app_config: AppConfig, transport: Transport) -> dict[str, Repository[Any]]:
    """Build one repository per configured collection.

    Collections without a known entity model return raw JSON payloads.
    """
    repositories: dict[str, Repository[Any]] = {}
    for name, config in app_config.repositories.items():
        repositories[name] = Repository(
            transport,
            config,
            app_config.api.base_url,
            model=ENTITY_MODELS.get(name),
        )
    return repositories
