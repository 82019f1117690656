"""
Tessera Query Builder — chainable, immutable, schema-aware query object.

Every chain method returns a NEW QueryBuilder (immutable cloning), so a
query can be branched freely:

    published = Post.query().where("published", True)
    recent = published.order("-created_at").limit(10)
    popular = published.where("views", 1000, ">=")

Terminal methods execute through the configured ``Database`` and cast the
raw rows through the bound table's schema:

    posts = recent.get()                 # Collection[Post]
    latest = Post.query().max("created_at")  # datetime, not str
    titles = Post.query().pluck("title")     # List[str]
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TYPE_CHECKING

from ..db.engine import get_database
from ..faults.domains import CastFault, RecordNotFoundFault, UsageFault
from .collection import Collection
from .fields import BooleanField, Field, FloatField, IntegerField
from .schema import SchemaRegistry, TableSchema
from .sql_builder import (
    DeleteBuilder,
    InsertBuilder,
    JoinClause,
    SQLBuilder,
    UpdateBuilder,
    quote_identifier,
)

if TYPE_CHECKING:
    from ..db.engine import Database
    from .base import Model

logger = logging.getLogger("tessera.models.query")

__all__ = ["QueryBuilder", "OPERATORS"]


OPERATORS = frozenset({"=", "!=", "<>", "<", ">", "<=", ">=", "LIKE", "NOT LIKE"})

# filter(**lookups) suffixes
_LOOKUP_OPERATORS = {
    "exact": "=",
    "ne": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "like": "LIKE",
}


class QueryBuilder:
    """
    Tessera query — chainable, immutable, blocking-terminal.

    Chain methods (return new QueryBuilder):
        select(*columns)                  — projection
        where(column, value, operator)    — comparison (default "=")
        where_raw(clause, *args)          — raw clause with bound parameters
        filter(**lookups)                 — ``views__gt=10`` style comparisons
        where_in / where_not_in           — membership
        where_between / where_not_between — ranges
        where_null / where_not_null       — NULL tests
        join(table, callback)             — INNER JOIN configured by a JoinClause callback
        where_in_select(col, table, cb)   — ``col IN (SELECT ...)``
        order(*fields)                    — ORDER BY ("-field" for DESC)
        limit(n) / offset(n)
        using(alias)                      — target a named database

    Terminal methods (execute query):
        get()          — Collection
        first()        — Optional[Model]
        first_or_fail()— Model
        count()        — int
        exists()       — bool
        min/max/avg/sum(column) — typed scalar
        pluck(column)  — List of typed values
        insert(fields) — complete attribute dict of the new row
        update(values) — int (rows affected)
        delete()       — int (rows deleted)
    """

    __slots__ = ("_model_cls", "_table", "_schema", "_builder", "_db_alias")

    def __init__(
        self,
        model_cls: Type[Model],
        *,
        table: Optional[str] = None,
        db_alias: Optional[str] = None,
    ):
        self._model_cls = model_cls
        self._table = table or model_cls.table_name()
        # Unknown tables fail here, before any statement is built
        self._schema: TableSchema = SchemaRegistry.use(self._table)
        self._builder = SQLBuilder().from_table(self._table).select(f'"{self._table}".*')
        self._db_alias = db_alias

    # ── Introspection ────────────────────────────────────────────────

    @property
    def model_class(self) -> Type[Model]:
        return self._model_cls

    @property
    def table(self) -> str:
        return self._table

    @property
    def schema(self) -> TableSchema:
        return self._schema

    def qualify(self, column: str) -> str:
        """``title`` -> ``posts.title``; qualified and raw columns pass through."""
        if "." in column or "(" in column or " " in column or column == "*":
            return column
        return f"{self._table}.{column}"

    # ── Chain methods (return new QueryBuilder) ──────────────────────

    def select(self, *columns: str) -> QueryBuilder:
        """Replace the projection. No columns restores ``table.*``."""
        new = self._clone()
        if columns:
            new._builder.select(*(self.qualify(c) for c in columns))
        else:
            new._builder.select(f'"{self._table}".*')
        return new

    def where(self, column: str, value: Any, operator: str = "=") -> QueryBuilder:
        """
        Compare a column with a value.

        Usage:
            .where("title", "Hello")
            .where("views", 100, ">=")
            .where("title", "%python%", "like")

        ``None`` with ``=``/``!=`` renders ``IS NULL``/``IS NOT NULL``.
        """
        op = operator.upper()
        if op not in OPERATORS:
            raise UsageFault(
                operation="QueryBuilder.where",
                reason=f"unsupported operator {operator!r}; expected one of {sorted(OPERATORS)}",
            )
        column = self.qualify(column)
        if value is None and op in ("=", "!=", "<>"):
            return self.where_null(column) if op == "=" else self.where_not_null(column)
        if "LIKE" not in op:
            value = self._encode(column, value)
        new = self._clone()
        new._builder.where(f"{quote_identifier(column)} {op} ?", value)
        return new

    def where_raw(self, clause: str, *args: Any) -> QueryBuilder:
        """
        Add a raw WHERE clause with positional (?) parameters.

        Parameters are bound exactly as given, so a ``None`` bound with
        ``= ?`` matches no row.

        Usage:
            .where_raw('"posts"."views" > ? + ?', 10, 5)
        """
        new = self._clone()
        new._builder.where(clause, *args)
        return new

    def filter(self, **lookups: Any) -> QueryBuilder:
        """
        Keyword lookups, AND-ed together.

        Supported suffixes: exact, ne, gt, gte, lt, lte, like, in,
        isnull, contains, startswith, endswith, range.

        Usage:
            .filter(title="Hello")
            .filter(views__gte=100, user_id__in=[1, 2])
        """
        new = self
        for key, value in lookups.items():
            column, _, lookup = key.partition("__")
            lookup = lookup or "exact"
            if lookup in _LOOKUP_OPERATORS:
                new = new.where(column, value, _LOOKUP_OPERATORS[lookup])
            elif lookup == "in":
                new = new.where_in(column, value)
            elif lookup == "isnull":
                new = new.where_null(column) if value else new.where_not_null(column)
            elif lookup == "contains":
                new = new.where(column, f"%{value}%", "LIKE")
            elif lookup == "startswith":
                new = new.where(column, f"{value}%", "LIKE")
            elif lookup == "endswith":
                new = new.where(column, f"%{value}", "LIKE")
            elif lookup == "range":
                low, high = value
                new = new.where_between(column, low, high)
            else:
                raise UsageFault(
                    operation="QueryBuilder.filter",
                    reason=f"unknown lookup '{lookup}' in '{key}'",
                )
        return new

    def where_in(self, column: str, values: Any) -> QueryBuilder:
        new = self._clone()
        column = self.qualify(column)
        new._builder.where_in(column, [self._encode(column, v) for v in values])
        return new

    def where_not_in(self, column: str, values: Any) -> QueryBuilder:
        new = self._clone()
        column = self.qualify(column)
        new._builder.where_not_in(column, [self._encode(column, v) for v in values])
        return new

    def where_between(self, column: str, low: Any, high: Any) -> QueryBuilder:
        new = self._clone()
        column = self.qualify(column)
        new._builder.where_between(column, self._encode(column, low), self._encode(column, high))
        return new

    def where_not_between(self, column: str, low: Any, high: Any) -> QueryBuilder:
        new = self._clone()
        column = self.qualify(column)
        new._builder.where_between(
            column, self._encode(column, low), self._encode(column, high), negate=True
        )
        return new

    def where_null(self, column: str) -> QueryBuilder:
        new = self._clone()
        new._builder.where_null(self.qualify(column))
        return new

    def where_not_null(self, column: str) -> QueryBuilder:
        new = self._clone()
        new._builder.where_null(self.qualify(column), negate=True)
        return new

    def join(self, table: str, callback: Callable[[JoinClause], Any]) -> QueryBuilder:
        """
        INNER JOIN ``table``; ``callback`` receives the JoinClause.

        Usage:
            .join("post_tag", lambda j: j.on("post_tag.tag_id", "tags.id"))
        """
        new = self._clone()
        new._builder.join(table, callback)
        return new

    def amend_join(self, table: str, callback: Callable[[JoinClause], Any]) -> QueryBuilder:
        """Apply ``callback`` to the existing joins on ``table``."""
        new = self._clone()
        for clause in new._builder.joins:
            if clause.table == table:
                callback(clause)
        return new

    def where_in_select(
        self,
        column: str,
        table: str,
        callback: Callable[[SQLBuilder], Any],
    ) -> QueryBuilder:
        """
        Restrict ``column`` to the rows selected from ``table``.

        Usage:
            .where_in_select("id", "post_tag",
                             lambda sub: sub.select("tag_id").where('"post_id" = ?', 5))
        """
        new = self._clone()
        new._builder.where_in_select(self.qualify(column), table, callback)
        return new

    def order(self, *fields: str) -> QueryBuilder:
        """ORDER BY. Prefix with '-' for DESC."""
        new = self._clone()
        for f in fields:
            if f.startswith("-"):
                new._builder.order_by("-" + self.qualify(f[1:]))
            else:
                new._builder.order_by(self.qualify(f))
        return new

    order_by = order

    def limit(self, n: Optional[int]) -> QueryBuilder:
        """Set LIMIT on query results."""
        new = self._clone()
        new._builder.limit(n)
        return new

    def offset(self, n: Optional[int]) -> QueryBuilder:
        """Set OFFSET for pagination."""
        new = self._clone()
        new._builder.offset(n)
        return new

    def using(self, db_alias: str) -> QueryBuilder:
        """Target a named database."""
        new = self._clone()
        new._db_alias = db_alias
        return new

    # ── Terminal methods (execute query) ─────────────────────────────

    def get(self) -> Collection:
        """Execute and return every matching row as a Collection (never None)."""
        return self._hydrate(self._fetch_rows())

    def all(self) -> Collection:
        return self.get()

    def first(self) -> Optional[Model]:
        """Return first matching row or None."""
        return self.limit(1).get().first()

    def first_or_fail(self) -> Model:
        """Return first matching row; raise RecordNotFoundFault if there is none."""
        record = self.first()
        if record is None:
            raise RecordNotFoundFault(model=self._model_cls.__name__)
        return record

    def count(self) -> int:
        """Return count of matching rows."""
        sql, params = self._builder.build_count()
        val = self._run("fetch_val", sql, params)
        return int(val) if val else 0

    def exists(self) -> bool:
        return self.count() > 0

    def min(self, column: str) -> Any:
        return self._aggregate("MIN", column)

    def max(self, column: str) -> Any:
        return self._aggregate("MAX", column)

    def avg(self, column: str) -> Any:
        return self._aggregate("AVG", column)

    def sum(self, column: str) -> Any:
        return self._aggregate("SUM", column)

    def pluck(self, column: str) -> List[Any]:
        """Fetch one column and decode every value through its codec."""
        codec = self._codec(column)
        sql, params = self.select(column)._builder.build()
        rows = self._run("fetch_all", sql, params)
        return [codec.to_python(next(iter(row.values()))) for row in rows]

    def insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert one row and return its complete attribute mapping.

        Every schema column is present in the result (unset columns take
        their field default or ``None``) and ``id`` is the generated int.
        """
        row: Dict[str, Any] = {}
        for name, field in self._schema.columns.items():
            if name in fields:
                value = fields[name]
            elif field.has_default():
                value = field.get_default()
            else:
                continue
            if value is None and field.primary_key:
                continue
            row[name] = field.to_db(value)

        sql, params = InsertBuilder(self._table).from_dict(row).build()
        new_id = self._run("insert", sql, params)

        result: Dict[str, Any] = {}
        for name, field in self._schema.columns.items():
            result[name] = field.to_python(row[name]) if name in row else None
        pk = self._schema.primary_key or "id"
        if result.get(pk) is None:
            result[pk] = int(new_id)
        logger.debug(f"Inserted {self._table} {pk}={result[pk]}")
        return result

    def update(self, values: Optional[Dict[str, Any]] = None, **kwargs: Any) -> int:
        """Update matching rows. Returns number of affected rows."""
        data = {**(values or {}), **kwargs}
        if not data:
            return 0
        builder = UpdateBuilder(self._table)
        for name, value in data.items():
            if self._schema.has_column(name):
                value = self._schema.get_column(name).to_db(value)
            builder.set_dict({name: value})
        where_sql, where_params = self._builder.where_sql()
        if where_sql:
            builder.where(where_sql, *where_params)
        sql, params = builder.build()
        cursor = self._run("execute", sql, params)
        return cursor.rowcount

    def delete(self) -> int:
        """Delete matching rows. Returns number of deleted rows."""
        builder = DeleteBuilder(self._table)
        where_sql, where_params = self._builder.where_sql()
        if where_sql:
            builder.where(where_sql, *where_params)
        sql, params = builder.build()
        cursor = self._run("execute", sql, params)
        return cursor.rowcount

    def to_sql(self) -> Tuple[str, List[Any]]:
        """Return the SELECT this query would execute."""
        return self._builder.build()

    # ── Internals ────────────────────────────────────────────────────

    def _clone(self) -> QueryBuilder:
        """Create an immutable copy of this query."""
        c = object.__new__(type(self))
        c._model_cls = self._model_cls
        c._table = self._table
        c._schema = self._schema
        c._builder = self._builder.copy()
        c._db_alias = self._db_alias
        return c

    def _database(self) -> Database:
        return get_database(self._db_alias)

    def _run(self, operation: str, sql: str, params: List[Any]) -> Any:
        logger.debug(f"{self._model_cls.__name__}.{operation}: {sql} {params}")
        return getattr(self._database(), operation)(sql, params)

    def _fetch_rows(self) -> List[Dict[str, Any]]:
        sql, params = self._builder.build()
        return self._run("fetch_all", sql, params)

    def _hydrate(self, rows: List[Dict[str, Any]]) -> Collection:
        records = [self._model_cls.hydrate(self._schema.cast(row)) for row in rows]
        return Collection(self._model_cls, records)

    def _encode(self, column: str, value: Any) -> Any:
        """
        Encode a comparison value through the codec of one of our own columns.

        Values the codec cannot store (``2.5`` against an integer column)
        are bound as given; filters are never type-checked.
        """
        table, _, name = column.rpartition(".")
        if table not in ("", self._table) or not self._schema.has_column(name):
            return value
        try:
            return self._schema.get_column(name).to_db(value)
        except CastFault:
            return value

    def _codec(self, column: str) -> Field:
        return self._schema.get_column(column.rsplit(".", 1)[-1])

    def _aggregate(self, function: str, column: str) -> Any:
        codec = self._codec(column)
        if function == "AVG" and isinstance(codec, (IntegerField, BooleanField)):
            codec = FloatField().bind(codec.name)
        elif function == "SUM" and isinstance(codec, BooleanField):
            codec = IntegerField().bind(codec.name)
        sql, params = self._builder.build_aggregate(function, self.qualify(column))
        raw = self._run("fetch_val", sql, params)
        return codec.to_python(raw)

    def __repr__(self) -> str:
        sql, params = self._builder.build()
        return f"<QueryBuilder {self._model_cls.__name__}: {sql} {params}>"
