"""
Inventory entity models.

Wire payloads use camelCase keys; models expose snake_case attributes and
accept either form on input.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class WireModel(BaseModel):
    """Base for models exchanged with the inventory API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict:
        """Serialize the fields that were explicitly set, with wire names."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class BaseEntity(WireModel):
    """Fields shared by all inventory entities."""

    id: str | None = None
    uuid: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    active: bool | None = None

    @property
    def key(self) -> str | None:
        """Identifier used in resource paths."""
        return self.uuid or self.id


class Warehouse(BaseEntity):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state_province: str | None = None
    postal_code: str | None = None
    country: str | None = None


class Product(BaseEntity):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    category: str | None = None
    brand: str | None = None
    sku: str | None = None


class Stock(BaseEntity):
    product: Product | None = None
    warehouse: Warehouse | None = None
    quantity: int = 0
    min_stock_level: int | None = None
    max_stock_level: int | None = None
    low_stock: bool | None = None
    over_stock: bool | None = None
    last_restock_date: datetime | None = None

    @property
    def below_minimum(self) -> bool:
        if self.low_stock is not None:
            return self.low_stock
        return self.min_stock_level is not None and self.quantity < self.min_stock_level


class PaginatedResponse(WireModel, Generic[T]):
    """One page of a paginated listing."""

    content: list[T] = Field(default_factory=list)
    total_elements: int = 0
    total_pages: int = 0
    size: int = 0
    number: int = 0
    first: bool = True
    last: bool = True
