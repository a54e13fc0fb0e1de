"""Repositories - cache-aside CRUD over the inventory API."""

from .base import QueryParams, Repository, build_query_items
from .entities import BaseEntity, PaginatedResponse, Product, Stock, Warehouse, WireModel
from .errors import ErrorKind, RepositoryError, kind_for_status
from .inventory import (
    build_repositories,
    product_repository,
    stock_repository,
    warehouse_repository,
)

__all__ = [
    # Repository
    "Repository",
    "QueryParams",
    "build_query_items",
    # Entities
    "WireModel",
    "BaseEntity",
    "Warehouse",
    "Product",
    "Stock",
    "PaginatedResponse",
    # Errors
    "ErrorKind",
    "RepositoryError",
    "kind_for_status",
    # Builders
    "warehouse_repository",
    "product_repository",
    "stock_repository",
    "build_repositories",
]
