"""
Tessera - active-record data access over SQL.

    from tessera import Model, relation, configure_database
    from tessera.models.fields import CharField

    configure_database("sqlite:///:memory:").connect()
"""

__version__ = "0.3.0"

from .config import ConfigLoader, DatabaseConfig, configure_from, configure_logging
from .db import Database, configure_database, get_database, set_database
from .faults import Fault
from .models import (
    Collection,
    Model,
    ModelRegistry,
    QueryBuilder,
    SchemaRegistry,
    relation,
)

__all__ = [
    "__version__",
    "Model",
    "relation",
    "Collection",
    "QueryBuilder",
    "ModelRegistry",
    "SchemaRegistry",
    "Database",
    "configure_database",
    "get_database",
    "set_database",
    "ConfigLoader",
    "DatabaseConfig",
    "configure_from",
    "configure_logging",
    "Fault",
]
