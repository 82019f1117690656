"""
Tessera DB Backend — Base Adapter Interface.

All database backends must implement this interface. The ``Database``
engine delegates to the appropriate adapter based on the connection URL.

This interface abstracts differences between drivers:
- Parameter placeholder style (?, %s, $1)
- Transaction semantics
- Introspection queries
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

logger = logging.getLogger("tessera.db.backends")

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
]


@dataclass
class AdapterCapabilities:
    """Describes what a specific backend supports."""

    param_style: str = "qmark"  # qmark (?) | format (%s) | numeric ($1)
    name: str = "base"


class DatabaseAdapter(ABC):
    """
    Abstract database adapter interface.

    All backends must implement these methods. The ``Database`` engine
    uses this interface to execute statements and manage transactions.
    Every call blocks until the driver returns.
    """

    capabilities: AdapterCapabilities = AdapterCapabilities()

    @abstractmethod
    def connect(self, url: str, **options) -> None:
        """Open a connection to the database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close the database connection."""
        ...

    @abstractmethod
    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute a SQL statement. Returns a cursor-like object."""
        ...

    @abstractmethod
    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute and return all rows as dicts."""
        ...

    @abstractmethod
    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute and return one row as dict, or None."""
        ...

    @abstractmethod
    def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute and return a scalar value."""
        ...

    # ── Transaction management ───────────────────────────────────────

    @abstractmethod
    def begin(self) -> None:
        """Start a transaction."""
        ...

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the current transaction."""
        ...

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager for transactions."""
        self.begin()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise

    # ── Introspection ────────────────────────────────────────────────

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        ...

    @abstractmethod
    def get_tables(self) -> List[str]:
        """List all table names."""
        ...

    # ── SQL adaptation ───────────────────────────────────────────────

    def adapt_sql(self, sql: str) -> str:
        """
        Adapt SQL placeholders from qmark (?) to the backend's param style.

        Override this in backends that use a different param style.
        """
        return sql

    def last_insert_id(self, cursor: Any) -> Optional[int]:
        """Extract last inserted ID from cursor."""
        if hasattr(cursor, "lastrowid"):
            return cursor.lastrowid
        return None

    @property
    def is_connected(self) -> bool:
        """Check if the adapter is connected."""
        return False

    @property
    def dialect(self) -> str:
        """Return the SQL dialect name."""
        return self.capabilities.name
