"""
Tessera Database — synchronous database layer.

Provides:
- Database: Connection manager with transaction support
- SQLite driver (default)
- Pluggable backend adapters (DatabaseAdapter)
- Module-level accessors for the default and aliased databases
- Structured faults (DatabaseConnectionFault, QueryFault, SchemaFault)
"""

from .engine import (
    Database,
    get_database,
    configure_database,
    set_database,
)

from .backends import (
    DatabaseAdapter,
    AdapterCapabilities,
    SQLiteAdapter,
)

from ..faults.domains import (
    DatabaseConnectionFault,
    QueryFault,
    SchemaFault,
)

__all__ = [
    "Database",
    "DatabaseConnectionFault",
    "QueryFault",
    "SchemaFault",
    "get_database",
    "configure_database",
    "set_database",
    # Backends
    "DatabaseAdapter",
    "AdapterCapabilities",
    "SQLiteAdapter",
]
