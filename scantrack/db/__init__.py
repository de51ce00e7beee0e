"""SQLite database module for refrigerators and their inventory."""

from .inventory import AccessDeniedError, InventoryDB, ItemNotFoundError
from .schema import ensure_schema

__all__ = [
    "AccessDeniedError",
    "InventoryDB",
    "ItemNotFoundError",
    "ensure_schema",
]
