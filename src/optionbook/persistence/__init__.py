"""Persistence utilities for optionbook."""

from .repository import SQLiteRepository, StoredPosition
from .storage import DB_ENV_VAR, SQLiteStorage, get_storage

__all__ = [
    "DB_ENV_VAR",
    "SQLiteRepository",
    "SQLiteStorage",
    "StoredPosition",
    "get_storage",
]
