"""
Tessera Database Engine — synchronous, adapter-backed connection manager.

Provides:
- Database: blocking connection manager delegating to backend adapters
- SQLite backend (sqlite3)
- Structured faults instead of bare driver exceptions
- Connection retries
- Named database aliases with a module-level default
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..faults.domains import (
    DatabaseConnectionFault,
    QueryFault,
    SchemaFault,
)
from .backends.base import DatabaseAdapter, AdapterCapabilities

logger = logging.getLogger("tessera.db")


def _create_adapter(driver: str) -> DatabaseAdapter:
    """Factory — instantiate the correct backend adapter."""
    if driver == "sqlite":
        from .backends.sqlite import SQLiteAdapter
        return SQLiteAdapter()
    raise DatabaseConnectionFault(
        url=f"<{driver}>",
        reason=f"No adapter registered for driver: {driver}",
    )


class Database:
    """
    Synchronous database engine for Tessera.

    Delegates all operations to the backend adapter selected by the URL
    scheme. All statements use ``?`` placeholders — the adapter translates
    to the backend's native param style.

    Driver exceptions never escape: they are wrapped as ``QueryFault``
    (statement failures) or ``DatabaseConnectionFault`` (connection
    failures), with the original exception chained.

    Usage:
        db = Database("sqlite:///:memory:")
        db.connect()
        rows = db.fetch_all('SELECT * FROM "users" WHERE "active" = ?', [1])
        db.disconnect()
    """

    __slots__ = (
        "_url",
        "_driver",
        "_adapter",
        "_connected",
        "_options",
        "_echo",
        "_in_transaction",
        "_connect_retries",
        "_connect_retry_delay",
    )

    def __init__(self, url: str = "sqlite:///db.sqlite3", *, echo: bool = False, **options: Any):
        """
        Initialize database engine.

        Args:
            url: Database URL. Supported schemes:
                 - sqlite:///path/to/db.sqlite3
                 - sqlite:///:memory:
            echo: Log every statement and its parameters at DEBUG level.
            **options: Driver-specific options passed to the backend adapter.
                connect_retries (int): Number of connection retries (default 3).
                connect_retry_delay (float): Seconds between retries (default 0.5).
        """
        self._url = url
        self._driver = self._detect_driver(url)
        self._adapter: DatabaseAdapter = _create_adapter(self._driver)
        self._connected = False
        self._echo = echo
        self._in_transaction = False
        self._connect_retries = int(options.pop("connect_retries", 3))
        self._connect_retry_delay = float(options.pop("connect_retry_delay", 0.5))
        self._options = options

    @staticmethod
    def _detect_driver(url: str) -> str:
        """Detect database driver from URL scheme."""
        if url.startswith("sqlite"):
            return "sqlite"
        raise DatabaseConnectionFault(
            url=url,
            reason=f"Unsupported database URL scheme: {url}",
        )

    # ── Connection management ────────────────────────────────────────

    def connect(self) -> None:
        """Open database connection with retry logic."""
        if self._connected:
            return

        last_exc: Optional[Exception] = None
        for attempt in range(1, self._connect_retries + 1):
            try:
                self._adapter.connect(self._url, **self._options)
                self._connected = True
                logger.info(f"Database connected ({self._driver}), attempt {attempt}")
                return
            except DatabaseConnectionFault:
                raise
            except Exception as exc:
                last_exc = exc
                if attempt < self._connect_retries:
                    logger.warning(
                        f"Connection attempt {attempt} failed: {exc}, "
                        f"retrying in {self._connect_retry_delay}s..."
                    )
                    time.sleep(self._connect_retry_delay)

        raise DatabaseConnectionFault(
            url=self._url,
            reason=f"Failed after {self._connect_retries} attempts: {last_exc}",
        )

    def disconnect(self) -> None:
        """Close database connection."""
        if not self._connected:
            return
        try:
            self._adapter.disconnect()
            self._connected = False
            logger.info("Database disconnected")
        except Exception as exc:
            self._connected = False
            raise DatabaseConnectionFault(
                url=self._url,
                reason=f"Disconnect failed: {exc}",
            ) from exc

    def ensure_connected(self) -> None:
        """Ensure a live connection exists, reconnecting if needed."""
        if not self._connected:
            self.connect()
        elif not self._adapter.is_connected:
            self._connected = False
            self.connect()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Context manager for transactions.

        Usage:
            with db.transaction():
                db.execute("INSERT INTO ...")
                db.execute("UPDATE ...")
        """
        self.ensure_connected()
        self._adapter.begin()
        self._in_transaction = True
        try:
            yield
            self._adapter.commit()
        except Exception:
            self._adapter.rollback()
            raise
        finally:
            self._in_transaction = False

    # ── Query execution ──────────────────────────────────────────────

    def _run(self, operation: str, sql: str, params: Optional[Sequence[Any]]) -> Any:
        self.ensure_connected()
        params = list(params or [])
        if self._echo:
            logger.debug(f"{operation}: {sql} {params}")
        try:
            return getattr(self._adapter, operation)(self._adapter.adapt_sql(sql), params)
        except (DatabaseConnectionFault, QueryFault, SchemaFault):
            raise
        except Exception as exc:
            raise QueryFault(
                model="<raw>",
                operation=operation,
                reason=str(exc),
                metadata={"sql": sql[:200]},
            ) from exc

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """
        Execute a SQL statement.

        Args:
            sql: SQL statement with ? placeholders
            params: Parameter values

        Returns:
            Cursor-like object (exposes lastrowid, rowcount)

        Raises:
            QueryFault: When statement execution fails
        """
        return self._run("execute", sql, params)

    def insert(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[int]:
        """Execute an INSERT and return the generated row id."""
        cursor = self._run("execute", sql, params)
        return self._adapter.last_insert_id(cursor)

    def fetch_all(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute query and return all rows as dicts.

        Raises:
            QueryFault: When query execution fails
        """
        return self._run("fetch_all", sql, params)

    def fetch_one(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Execute query and return first row as dict, or None."""
        return self._run("fetch_one", sql, params)

    def fetch_val(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> Any:
        """Execute query and return scalar value from first row, first column."""
        return self._run("fetch_val", sql, params)

    # ── Introspection (delegated to adapter) ─────────────────────────

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database."""
        self.ensure_connected()
        return self._adapter.table_exists(table_name)

    def get_tables(self) -> List[str]:
        """List all table names in the database."""
        self.ensure_connected()
        return self._adapter.get_tables()

    # ── Properties ───────────────────────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._connected and self._adapter.is_connected

    @property
    def url(self) -> str:
        return self._url

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def dialect(self) -> str:
        """Return the SQL dialect name."""
        return self._adapter.dialect

    @property
    def capabilities(self) -> AdapterCapabilities:
        return self._adapter.capabilities

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction


# ── Module-level singleton accessor ─────────────────────────────────────────

_default_database: Optional[Database] = None
_database_registry: Dict[str, Database] = {}


def get_database(alias: Optional[str] = None) -> Database:
    """
    Get a database instance by alias, or the default.

    Raises:
        DatabaseConnectionFault: If no database is configured.
    """
    if alias and alias != "default":
        db = _database_registry.get(alias)
        if db is None:
            raise DatabaseConnectionFault(
                url=f"<alias:{alias}>",
                reason=f"No database configured with alias '{alias}'. "
                       f"Available: {list(_database_registry.keys())}",
            )
        return db

    if _default_database is None:
        raise DatabaseConnectionFault(
            url="<not configured>",
            reason="No database configured. Call configure_database() first.",
        )
    return _default_database


def configure_database(
    url: str = "sqlite:///db.sqlite3",
    *,
    alias: str = "default",
    **options: Any,
) -> Database:
    """
    Configure and return a database instance.

    Args:
        url: Database connection URL
        alias: Database alias for multi-database setups (default "default")
        **options: Driver-specific options

    Returns:
        Database instance (not yet connected)
    """
    db = Database(url, **options)
    set_database(db, alias=alias)
    return db


def set_database(db: Optional[Database], *, alias: str = "default") -> None:
    """Set an externally-created database as the default or by alias."""
    global _default_database
    if db is None:
        _database_registry.pop(alias, None)
    else:
        _database_registry[alias] = db
    if alias == "default":
        _default_database = db
