"""CLI command modules."""

from . import entities, export

__all__ = [
    "entities",
    "export",
]
