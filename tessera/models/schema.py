"""
Tessera Schema — per-table column codecs.

A ``TableSchema`` maps column names to ``Field`` codecs and is what the
query layer consults at cast time. ``SchemaRegistry`` is the global
table-name -> schema map; record types register themselves on class
creation, pivot tables without a record type are declared with
``SchemaRegistry.define()``:

    SchemaRegistry.define(
        "post_tag",
        post_id=IntegerField(),
        tag_id=IntegerField(),
        created_at=DateTimeField(null=True),
    )
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, TYPE_CHECKING

from ..faults.domains import SchemaFault
from .fields import AutoField, Field
from .sql_builder import CreateTableBuilder

if TYPE_CHECKING:
    from ..db.engine import Database

logger = logging.getLogger("tessera.models.schema")

__all__ = ["TableSchema", "SchemaRegistry"]


class TableSchema:
    """Ordered column codecs for one table."""

    __slots__ = ("name", "_columns")

    def __init__(self, name: str, columns: Dict[str, Field]):
        self.name = name
        self._columns: Dict[str, Field] = {}
        for column, field in columns.items():
            if not field.name:
                field.bind(column)
            self._columns[column] = field

    def has_column(self, name: str) -> bool:
        return name in self._columns

    def get_column(self, name: str) -> Field:
        try:
            return self._columns[name]
        except KeyError:
            raise SchemaFault(
                table=self.name,
                reason=f"unknown column '{name}'",
            ) from None

    @property
    def columns(self) -> Dict[str, Field]:
        return dict(self._columns)

    @property
    def column_names(self) -> List[str]:
        return list(self._columns)

    @property
    def primary_key(self) -> Optional[str]:
        for name, field in self._columns.items():
            if field.primary_key:
                return name
        return None

    def cast(self, row: Dict[str, object]) -> Dict[str, object]:
        """Keep the schema's columns of ``row`` and decode each one."""
        return {
            key: self._columns[key].to_python(value)
            for key, value in row.items()
            if key in self._columns
        }

    def create_table_sql(self, dialect: str = "sqlite") -> str:
        builder = CreateTableBuilder(self.name)
        for field in self._columns.values():
            builder.column(field.sql_column_def(dialect))
        return builder.build()

    def __repr__(self) -> str:
        return f"<TableSchema {self.name}: {', '.join(self._columns)}>"


class SchemaRegistry:
    """
    Global registry of table schemas.

    Populated by the record metaclass and by ``define()`` for pivot tables.
    """

    _schemas: Dict[str, TableSchema] = {}

    @classmethod
    def register(cls, schema: TableSchema) -> TableSchema:
        cls._schemas[schema.name] = schema
        logger.debug(f"Registered schema '{schema.name}' ({len(schema.column_names)} columns)")
        return schema

    @classmethod
    def define(cls, table: str, **fields: Field) -> TableSchema:
        """Declare a table that has no record type (e.g. a pivot table)."""
        if not any(f.primary_key for f in fields.values()) and "id" not in fields:
            fields = {"id": AutoField(), **fields}
        return cls.register(TableSchema(table, fields))

    @classmethod
    def use(cls, table: str) -> TableSchema:
        """Return the schema for ``table``; unknown tables are a programming error."""
        schema = cls._schemas.get(table)
        if schema is None:
            raise SchemaFault(
                table=table,
                reason=f"no schema registered. Known tables: {sorted(cls._schemas)}",
            )
        return schema

    @classmethod
    def has(cls, table: str) -> bool:
        return table in cls._schemas

    @classmethod
    def create_tables(cls, db: "Database") -> List[str]:
        """Create every registered table that does not exist yet."""
        statements: List[str] = []
        for schema in cls._schemas.values():
            sql = schema.create_table_sql(db.dialect)
            db.execute(sql)
            statements.append(sql)
        logger.info(f"Created {len(statements)} table(s)")
        return statements

    @classmethod
    def drop_tables(cls, db: "Database") -> List[str]:
        statements: List[str] = []
        for table in reversed(list(cls._schemas)):
            sql = f'DROP TABLE IF EXISTS "{table}"'
            db.execute(sql)
            statements.append(sql)
        return statements

    @classmethod
    def reset(cls) -> None:
        """Clear registry (for testing)."""
        cls._schemas.clear()
