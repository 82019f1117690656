"""
Tessera DB Backend — SQLite adapter via the sqlite3 driver.

This is the default backend. Rows are returned as dicts whose keys keep
the column order of the SELECT list.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence

from .base import (
    DatabaseAdapter,
    AdapterCapabilities,
)

logger = logging.getLogger("tessera.db.backends.sqlite")

__all__ = ["SQLiteAdapter"]


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite adapter using the sqlite3 driver.

    Features:
    - Foreign key enforcement
    - Autocommit outside explicit transactions
    - Dict rows via sqlite3.Row
    """

    capabilities = AdapterCapabilities(
        param_style="qmark",
        name="sqlite",
    )

    def __init__(self):
        self._connection: Optional[sqlite3.Connection] = None
        self._connected = False
        self._in_transaction = False

    def connect(self, url: str, **options) -> None:
        if self._connected:
            return
        db_path = self._parse_url(url)
        # isolation_level=None: sqlite3 stays in autocommit, BEGIN is explicit
        self._connection = sqlite3.connect(db_path, isolation_level=None, **options)
        self._connection.execute("PRAGMA foreign_keys=ON")
        self._connection.row_factory = sqlite3.Row
        self._connected = True
        logger.info(f"SQLite connected: {db_path}")

    def disconnect(self) -> None:
        if not self._connected:
            return
        if self._connection:
            self._connection.close()
            self._connection = None
        self._connected = False
        logger.info("SQLite disconnected")

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        if not self._connected:
            raise RuntimeError("Not connected")
        return self._connection.execute(sql, list(params or []))

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        if not self._connected:
            raise RuntimeError("Not connected")
        cursor = self._connection.execute(sql, list(params or []))
        return [dict(row) for row in cursor.fetchall()]

    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        if not self._connected:
            raise RuntimeError("Not connected")
        cursor = self._connection.execute(sql, list(params or []))
        row = cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        if not self._connected:
            raise RuntimeError("Not connected")
        cursor = self._connection.execute(sql, list(params or []))
        row = cursor.fetchone()
        if row is None:
            return None
        return row[0]

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        self._connection.execute("BEGIN")
        self._in_transaction = True

    def commit(self) -> None:
        self._connection.execute("COMMIT")
        self._in_transaction = False

    def rollback(self) -> None:
        self._connection.execute("ROLLBACK")
        self._in_transaction = False

    # ── Introspection ────────────────────────────────────────────────

    def table_exists(self, table_name: str) -> bool:
        row = self.fetch_one(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            [table_name],
        )
        return row is not None

    def get_tables(self) -> List[str]:
        rows = self.fetch_all(
            "SELECT name FROM sqlite_master WHERE type='table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [r["name"] for r in rows]

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def dialect(self) -> str:
        return "sqlite"

    @staticmethod
    def _parse_url(url: str) -> str:
        """Extract file path from sqlite URL."""
        for prefix in ("sqlite:///", "sqlite://"):
            if url.startswith(prefix):
                path = url[len(prefix):]
                return path or ":memory:"
        return url.replace("sqlite:", "").lstrip("/") or ":memory:"
