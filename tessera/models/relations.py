"""
Tessera Relations — foreign-key topologies as prepared queries.

A relation is a strategy object bound to one origin record. On
construction it resolves the target table and calls ``prepare()`` once,
which injects the filter, join or subquery encoding the relationship
into an ordinary ``QueryBuilder``. Everything chained afterwards composes
with that predicate:

    class User(Model):
        @relation
        def posts(self):
            return self.has_many("Post")

    user.posts                                   # Collection, cached on the record
    user.relation("posts").where("views", 100, ">=").get()

Variants:
    BelongsTo        target.id = origin.{target}_id                 -> record
    HasMany          target.{origin}_id = origin.id                 -> Collection
    BelongsToMany    pivot join + target.id IN (pivot rows)         -> Collection (with .pivot)
    HasOneThrough    target.id IN (SELECT {target}_id FROM through) -> record
    HasManyThrough   target.{through}_id IN (SELECT id FROM through)-> Collection
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Type, Union, TYPE_CHECKING

from ..faults.domains import RecordNotFoundFault
from .collection import Collection
from .inflection import foreign_key, pivot_table
from .query import QueryBuilder
from .registry import ModelRegistry
from .schema import SchemaRegistry, TableSchema
from .sql_builder import JoinClause, SQLBuilder, quote_identifier

if TYPE_CHECKING:
    from .base import Model

logger = logging.getLogger("tessera.models.relations")

__all__ = [
    "Relation",
    "BelongsTo",
    "HasMany",
    "BelongsToMany",
    "HasOneThrough",
    "HasManyThrough",
]

ModelRef = Union[str, Type["Model"]]


def _bind_key(query: QueryBuilder, column: str, value: Any) -> QueryBuilder:
    """``column = ?`` bound as given; a missing key (None) matches no row."""
    return query.where_raw(f"{quote_identifier(query.qualify(column))} = ?", value)


def _chained(name: str) -> Callable[..., "Relation"]:
    """Relation method forwarding to the QueryBuilder chain method ``name``."""
    def method(self: Relation, *args: Any, **kwargs: Any) -> Relation:
        return self._derive(getattr(self._query, name)(*args, **kwargs))
    method.__name__ = name
    method.__doc__ = getattr(QueryBuilder, name).__doc__
    return method


class Relation(ABC):
    """
    Relationship strategy owning a prepared query.

    Subclasses supply three hooks:
        attribute() — filter column on the target (or pivot/through) table
        value()     — comparison value read from the origin record
        prepare(q)  — returns ``q`` with the relationship predicate applied

    Chain methods return a new relation of the same kind over the
    extended query; the origin binding is never re-prepared.
    """

    #: ``get()`` resolves to a single record instead of a Collection
    returns_one: bool = False

    def __init__(self, origin: Model, target: ModelRef):
        self._origin = origin
        self._origin_cls = type(origin)
        self._origin_table = origin.table_name()
        self._target_cls: Type[Model] = ModelRegistry.resolve(target)
        self._table = self._target_cls.table_name()
        self._query = self.prepare(QueryBuilder(self._target_cls))
        logger.debug(
            f"Prepared {type(self).__name__} {self._origin_cls.__name__} -> "
            f"{self._target_cls.__name__}: {self._query.to_sql()[0]}"
        )

    # ── Hooks ────────────────────────────────────────────────────────

    @abstractmethod
    def attribute(self) -> str:
        ...

    @abstractmethod
    def value(self) -> Any:
        ...

    @abstractmethod
    def prepare(self, query: QueryBuilder) -> QueryBuilder:
        ...

    # ── Introspection ────────────────────────────────────────────────

    @property
    def origin(self) -> Model:
        return self._origin

    @property
    def target(self) -> Type[Model]:
        return self._target_cls

    @property
    def table(self) -> str:
        return self._table

    @property
    def query(self) -> QueryBuilder:
        return self._query

    def _derive(self, query: QueryBuilder) -> Relation:
        new = copy.copy(self)
        new._query = query
        return new

    # ── Chain methods ────────────────────────────────────────────────

    select = _chained("select")
    where = _chained("where")
    where_raw = _chained("where_raw")
    filter = _chained("filter")
    where_in = _chained("where_in")
    where_not_in = _chained("where_not_in")
    where_between = _chained("where_between")
    where_not_between = _chained("where_not_between")
    where_null = _chained("where_null")
    where_not_null = _chained("where_not_null")
    join = _chained("join")
    where_in_select = _chained("where_in_select")
    order = _chained("order")
    limit = _chained("limit")
    offset = _chained("offset")
    using = _chained("using")

    # ── Terminal methods ─────────────────────────────────────────────

    def _collect(self) -> Collection:
        return self._query.get()

    def get(self) -> Union[Collection, Optional[Model]]:
        """Resolve the relation: a Collection, or one record for to-one variants."""
        collection = self._collect()
        return collection.first() if self.returns_one else collection

    def first(self) -> Optional[Model]:
        return self.limit(1)._collect().first()

    def first_or_fail(self) -> Model:
        record = self.first()
        if record is None:
            raise RecordNotFoundFault(model=self._target_cls.__name__)
        return record

    def count(self) -> int:
        return self._query.count()

    def exists(self) -> bool:
        return self._query.exists()

    def min(self, column: str) -> Any:
        return self._query.min(column)

    def max(self, column: str) -> Any:
        return self._query.max(column)

    def avg(self, column: str) -> Any:
        return self._query.avg(column)

    def sum(self, column: str) -> Any:
        return self._query.sum(column)

    def pluck(self, column: str) -> List[Any]:
        return self._query.pluck(column)

    def update(self, values: Optional[Dict[str, Any]] = None, **kwargs: Any) -> int:
        return self._query.update(values, **kwargs)

    def delete(self) -> int:
        return self._query.delete()

    def to_sql(self):
        return self._query.to_sql()

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self._origin_cls.__name__} -> "
            f"{self._target_cls.__name__}>"
        )


class BelongsTo(Relation):
    """The origin holds the foreign key: ``target.id = origin.{target}_id``."""

    returns_one = True

    def attribute(self) -> str:
        return "id"

    def value(self) -> Any:
        return self._origin.get_attribute(foreign_key(self._table))

    def prepare(self, query: QueryBuilder) -> QueryBuilder:
        return _bind_key(query, self.attribute(), self.value())


class HasMany(Relation):
    """The target holds the foreign key: ``target.{origin}_id = origin.id``."""

    def attribute(self) -> str:
        return foreign_key(self._origin_table)

    def value(self) -> Any:
        return self._origin.get_attribute("id")

    def prepare(self, query: QueryBuilder) -> QueryBuilder:
        return _bind_key(query, self.attribute(), self.value())


class BelongsToMany(Relation):
    """
    Many-to-many through a pivot table.

    The pivot defaults to the two singularized table names, sorted and
    joined with ``_`` (``posts`` + ``tags`` -> ``post_tag``). Every
    resolved record carries a ``pivot`` attribute holding its pivot row,
    cast through the pivot schema:

        post.tags[0].pivot["created_at"]
        post.relation("tags").with_pivot("created_at").get()
    """

    def __init__(self, origin: Model, target: ModelRef, pivot: Optional[str] = None):
        target_cls = ModelRegistry.resolve(target)
        self._pivot = pivot or pivot_table(origin.table_name(), target_cls.table_name())
        self._pivot_schema: TableSchema = SchemaRegistry.use(self._pivot)
        super().__init__(origin, target_cls)

    @property
    def pivot_table(self) -> str:
        return self._pivot

    def attribute(self) -> str:
        return foreign_key(self._origin_table)

    def value(self) -> Any:
        return self._origin.get_attribute("id")

    def related_key(self) -> str:
        """Pivot column pointing at the target table."""
        return foreign_key(self._table)

    def _pivot_alias(self, column: str) -> str:
        return f'"{self._pivot}"."{column}" AS "{self._pivot}_{column}"'

    def prepare(self, query: QueryBuilder) -> QueryBuilder:
        pivot, attribute, value = self._pivot, self.attribute(), self.value()
        related_key = self.related_key()

        def join_pivot(join: JoinClause) -> None:
            join.on(f"{pivot}.{related_key}", f"{self._table}.id")
            join.where(f"{pivot}.{attribute}", value)
            join.select(self._pivot_alias(attribute), self._pivot_alias(related_key))

        def pivot_rows(sub: SQLBuilder) -> None:
            sub.select(related_key).where(f'"{attribute}" = ?', value)

        return query.join(pivot, join_pivot).where_in_select("id", pivot, pivot_rows)

    def with_pivot(self, *columns: str) -> BelongsToMany:
        """Also load ``columns`` of the pivot row into each record's ``pivot``."""
        def extra_columns(join: JoinClause) -> None:
            join.select(*(self._pivot_alias(c) for c in columns))

        return self._derive(self._query.amend_join(self._pivot, extra_columns))

    def _collect(self) -> Collection:
        prefix = f"{self._pivot}_"
        target_schema = self._query.schema
        records = []
        for row in self._query._fetch_rows():
            attributes = target_schema.cast(row)
            pivot_row = {
                key[len(prefix):]: value
                for key, value in row.items()
                if key.startswith(prefix)
            }
            attributes["pivot"] = self._pivot_schema.cast(pivot_row)
            records.append(self._target_cls.hydrate(attributes))
        return Collection(self._target_cls, records)


class _Through(Relation):
    """Shared wiring for the two through-chains."""

    def __init__(self, origin: Model, target: ModelRef, through: ModelRef):
        self._through_cls: Type[Model] = ModelRegistry.resolve(through)
        self._through_table = self._through_cls.table_name()
        super().__init__(origin, target)

    @property
    def through(self) -> Type[Model]:
        return self._through_cls

    @abstractmethod
    def through_select(self) -> str:
        ...

    @abstractmethod
    def through_where(self) -> str:
        ...

    def prepare(self, query: QueryBuilder) -> QueryBuilder:
        select, where, value = self.through_select(), self.through_where(), self.value()

        def through_rows(sub: SQLBuilder) -> None:
            sub.select(select).where(f'"{where}" = ?', value)

        return query.where_in_select(self.attribute(), self._through_table, through_rows)


class HasOneThrough(_Through):
    """
    origin -> through -> target where the origin holds the through key.

    ``target.id IN (SELECT {target}_id FROM through WHERE id = origin.{through}_id)``
    """

    returns_one = True

    def attribute(self) -> str:
        return "id"

    def value(self) -> Any:
        return self._origin.get_attribute(foreign_key(self._through_table))

    def through_select(self) -> str:
        return foreign_key(self._table)

    def through_where(self) -> str:
        return "id"


class HasManyThrough(_Through):
    """
    origin -> through -> target where the through rows hold the origin key.

    ``target.{through}_id IN (SELECT id FROM through WHERE {origin}_id = origin.id)``
    """

    def attribute(self) -> str:
        return foreign_key(self._through_table)

    def value(self) -> Any:
        return self._origin.get_attribute("id")

    def through_select(self) -> str:
        return "id"

    def through_where(self) -> str:
        return foreign_key(self._origin_table)
