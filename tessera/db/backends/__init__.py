"""
Tessera DB Backends Package — pluggable database adapters.

Provides a common adapter interface and the SQLite implementation.
"""

from .base import DatabaseAdapter, AdapterCapabilities
from .sqlite import SQLiteAdapter

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
    "SQLiteAdapter",
]
