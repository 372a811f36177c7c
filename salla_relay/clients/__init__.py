"""Expose constructed client wrappers."""

from .file_store import JSONFileStore
from .salla_api import SallaApiClient
from .sqlite_store import SQLiteStore

__all__ = [
    "JSONFileStore",
    "SQLiteStore",
    "SallaApiClient",
]
