"""
Tessera Model Base — metaclass-driven active records.

Usage:
    from tessera.models import Model, relation
    from tessera.models.fields import CharField, IntegerField, DateTimeField

    class Post(Model):
        title = CharField(max_length=200)
        views = IntegerField(default=0)
        user_id = IntegerField(null=True)
        created_at = DateTimeField(null=True)

        @relation
        def user(self):
            return self.belongs_to("User")

        @relation
        def tags(self):
            return self.belongs_to_many("Tag")

    post = Post.create({"title": "Hello", "user_id": 1})
    post.title = "Hello, world"
    post.is_dirty("title")      # True
    post.save()                 # UPDATE "posts" SET "title" = ? WHERE ...
    post.user                   # BelongsTo resolved once, then cached
"""

from __future__ import annotations

import datetime
import decimal
import json
import logging
from collections.abc import Mapping
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
    Union,
)

from ..faults.domains import (
    AttributeFault,
    FillFault,
    MissingIdentifierFault,
    RecordNotFoundFault,
    SchemaFault,
)
from .collection import Collection
from .fields import AutoField, Field
from .inflection import tablerize
from .query import QueryBuilder
from .registry import ModelRegistry
from .relations import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasManyThrough,
    HasOneThrough,
    Relation,
)
from .schema import SchemaRegistry, TableSchema

logger = logging.getLogger("tessera.models")

__all__ = ["Model", "ModelMeta", "relation"]


def relation(method: Callable[[Any], Relation]) -> Callable[[Any], Relation]:
    """
    Mark a method as a relation accessor.

    Reading the method's name as an attribute resolves the relation once
    and caches the result on the record; ``record.relation(name)`` returns
    a fresh, chainable relation query instead.
    """
    method._is_relation = True
    return method


def _pop_option(namespace: Dict[str, Any], key: str, kind: type) -> Any:
    if isinstance(namespace.get(key), kind):
        return namespace.pop(key)
    return None


class ModelMeta(type):
    """
    Metaclass for Tessera models.

    Handles:
    - Field collection (fields live in ``_fields``, values in attributes)
    - Auto-PK injection (``id`` AutoField)
    - Table name derivation (``table = "..."`` or inflected class name)
    - Relation accessor table (``@relation`` methods -> ``_relations``)
    - Rejecting columns or relations named after Model members
      (``save``, ``delete``, ``copy``, ``schema``, ``changed``, ...), which
      attribute reads would never reach
    - Schema and model registration
    """

    def __new__(
        mcs,
        name: str,
        bases: Tuple[type, ...],
        namespace: Dict[str, Any],
        **kwargs,
    ) -> ModelMeta:
        # Don't process the base Model class itself
        parents = [b for b in bases if isinstance(b, ModelMeta)]
        if not parents:
            return super().__new__(mcs, name, bases, namespace)

        # Options are plain values; a Field under the same name is a column
        table_attr = _pop_option(namespace, "table", str)
        db_alias = _pop_option(namespace, "database", str)
        abstract = bool(_pop_option(namespace, "abstract", bool))

        # Inherit fields and relations from parents
        fields: Dict[str, Field] = {}
        relations: Dict[str, Callable[[Any], Relation]] = {}
        for parent in bases:
            fields.update(getattr(parent, "_fields", {}))
            relations.update(getattr(parent, "_relations", {}))

        for key, value in list(namespace.items()):
            if isinstance(value, Field):
                fields[key] = namespace.pop(key)
            elif callable(value) and getattr(value, "_is_relation", False):
                relations[key] = namespace.pop(key)

        if not any(f.primary_key for f in fields.values()):
            fields = {"id": AutoField(), **fields}

        cls = super().__new__(mcs, name, bases, namespace)

        for key in (*fields, *relations):
            if hasattr(cls, key):
                raise SchemaFault(
                    table=table_attr or tablerize(name),
                    reason=f"'{key}' on {name} would shadow Model.{key}; rename it",
                )

        for fname, field in fields.items():
            if not field.name:
                field.bind(fname)
            if field.model is None:
                field.model = cls

        cls._fields = fields
        cls._relations = relations
        if table_attr:
            cls._table_name = table_attr
        elif not abstract:
            cls._table_name = tablerize(name)
        if db_alias is not None:
            cls._db_alias = db_alias

        if not abstract:
            cls._schema = SchemaRegistry.register(TableSchema(cls._table_name, fields))
            ModelRegistry.register(cls)

        return cls


class Model(metaclass=ModelMeta):
    """
    Tessera Model base class — an attribute snapshot bound to a table.

    A record keeps three mappings:
        attributes — current values (read and written as plain attributes)
        initial    — snapshot taken at load time or after insert/update
        changed    — columns written by the last ``save()``

    The presence of a non-None ``id`` is what separates a persisted record
    (``save()`` updates) from a new one (``save()`` inserts).

    API:
        post = Post.find(1)
        posts = Post.where("views", 100, ">=").order("-views").get()
        post = Post.create({"title": "Hello"})
        post.fill({"title": "Hi"}).save()
        post.tags                       # lazy, memoized relation
        post.relation("tags").with_pivot("created_at").get()
    """

    _fields: ClassVar[Dict[str, Field]] = {}
    _relations: ClassVar[Dict[str, Callable[[Any], Relation]]] = {}
    _table_name: ClassVar[str] = ""
    _schema: ClassVar[TableSchema]
    _db_alias: ClassVar[Optional[str]] = None

    def __init__(self, attributes: Optional[Mapping] = None, **kwargs: Any):
        """Create a record in memory (not persisted)."""
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_initial", {})
        object.__setattr__(self, "_changed", {})
        if attributes is not None:
            self.fill(attributes)
        if kwargs:
            self.fill(kwargs)

    @classmethod
    def hydrate(cls, attributes: Dict[str, Any]) -> Model:
        """Build a record whose attributes are also its initial snapshot."""
        instance = cls.__new__(cls)
        Model.__init__(instance)
        return instance.set_attributes(attributes, as_initial=True)

    # ── Attribute access ─────────────────────────────────────────────

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        if name.startswith("_"):
            raise AttributeError(name)
        attributes = self.__dict__.get("_attributes")
        if attributes is None:
            raise AttributeError(name)

        accessor = type(self)._relations.get(name)
        if accessor is not None:
            if name not in attributes:
                result = accessor(self)
                attributes[name] = result.get() if isinstance(result, Relation) else result
            return attributes[name]

        return attributes.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self._attributes[name] = value

    def __delattr__(self, name: str) -> None:
        if name.startswith("_"):
            object.__delattr__(self, name)
        else:
            self._attributes.pop(name, None)

    def get_attribute(self, key: str, default: Any = None) -> Any:
        """Plain attribute read; never resolves relations."""
        return self._attributes.get(key, default)

    def set_attribute(self, key: str, value: Any) -> Model:
        self._attributes[key] = value
        return self

    def has_attribute(self, key: str) -> bool:
        """True when ``key`` is set to something other than None."""
        return self._attributes.get(key) is not None

    def get_attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def set_attributes(self, attributes: Mapping, as_initial: bool = False) -> Model:
        """Replace the attribute set; ``as_initial`` also makes it the snapshot."""
        object.__setattr__(self, "_attributes", dict(attributes))
        if as_initial:
            object.__setattr__(self, "_initial", dict(attributes))
        return self

    def get_initial(self, name: Optional[str] = None) -> Any:
        if name is None:
            return dict(self._initial)
        if name not in self._initial:
            raise AttributeFault(
                model=type(self).__name__,
                attribute=name,
                reason="not present in the initial snapshot",
            )
        return self._initial[name]

    def fill(self, fields: Mapping) -> Model:
        """Bulk-assign attributes from a name -> value mapping."""
        if not isinstance(fields, Mapping):
            raise FillFault(model=type(self).__name__, received=fields)
        self._attributes.update(fields)
        return self

    def except_attributes(self, *keys: str) -> Model:
        for key in keys:
            self._attributes.pop(key, None)
        return self

    def only_attributes(self, *keys: str) -> Model:
        for key in list(self._attributes):
            if key not in keys:
                del self._attributes[key]
        return self

    def copy(self) -> Model:
        """Independent record with the same attributes and snapshot."""
        clone = type(self).__new__(type(self))
        object.__setattr__(clone, "_attributes", dict(self._attributes))
        object.__setattr__(clone, "_initial", dict(self._initial))
        object.__setattr__(clone, "_changed", dict(self._changed))
        return clone

    # ── Dirty tracking ───────────────────────────────────────────────

    def get_attributes_diff(self) -> Dict[str, Any]:
        """Current values that differ from the snapshot (snapshot keys only)."""
        return {
            key: value
            for key, value in self._attributes.items()
            if key in self._initial and self._initial[key] != value
        }

    def is_dirty(self, field: Optional[str] = None) -> bool:
        diff = self.get_attributes_diff()
        if field is None:
            return bool(diff)
        return field in diff

    def is_clean(self, field: Optional[str] = None) -> bool:
        return not self.is_dirty(field)

    def was_changed(self, field: Optional[str] = None) -> bool:
        """Whether the last ``save()`` wrote ``field`` (or anything)."""
        if field is None:
            return bool(self._changed)
        return field in self._changed

    @property
    def changed(self) -> Dict[str, Any]:
        return dict(self._changed)

    # ── Persistence ──────────────────────────────────────────────────

    def save(self) -> Optional[int]:
        """
        Insert or update this record and return its id.

        Persisted records write only the columns that differ from the
        snapshot; an unchanged record issues no statement.
        """
        cls = type(self)
        if self.has_attribute("id"):
            columns = {
                key: value
                for key, value in self.get_attributes_diff().items()
                if key != "id" and cls._schema.has_column(key)
            }
            object.__setattr__(self, "_changed", columns)
            if columns:
                cls.query().where("id", self.id).update(columns)
                self._initial.update(columns)
                logger.debug(f"Updated {cls.__name__} id={self.id}: {sorted(columns)}")
            return self.id

        attributes = cls.query().insert(self._attributes)
        self.set_attributes(attributes, as_initial=True)
        object.__setattr__(self, "_changed", {})
        logger.debug(f"Inserted {cls.__name__} id={self.id}")
        return self.id

    def delete(self) -> int:
        """Delete this record's row. The instance stays readable."""
        cls = type(self)
        if not self.has_attribute("id"):
            raise MissingIdentifierFault(model=cls.__name__, operation="delete")
        deleted = cls.query().where("id", self.id).delete()
        logger.debug(f"Deleted {cls.__name__} id={self.id}")
        return deleted

    def refresh(self) -> Model:
        """Reload this instance in place; drops cached relations."""
        cls = type(self)
        if not self.has_attribute("id"):
            raise MissingIdentifierFault(model=cls.__name__, operation="refresh")
        current = cls.query().where("id", self.id).first()
        if current is None:
            raise RecordNotFoundFault(model=cls.__name__, ids=self.id)
        return self.set_attributes(current.get_attributes(), as_initial=True)

    def fresh(self) -> Optional[Model]:
        """Reload into a new instance; None if the row no longer exists."""
        cls = type(self)
        if not self.has_attribute("id"):
            raise MissingIdentifierFault(model=cls.__name__, operation="fresh")
        return cls.query().where("id", self.id).first()

    # ── Relations ────────────────────────────────────────────────────

    def relation(self, name: str) -> Relation:
        """A fresh relation query for the accessor ``name``."""
        accessor = type(self)._relations.get(name)
        if accessor is None:
            raise AttributeFault(
                model=type(self).__name__,
                attribute=name,
                reason="no relation accessor with this name",
            )
        return accessor(self)

    def belongs_to(self, target: Union[str, Type[Model]]) -> BelongsTo:
        return BelongsTo(self, target)

    def has_many(self, target: Union[str, Type[Model]]) -> HasMany:
        return HasMany(self, target)

    def belongs_to_many(
        self,
        target: Union[str, Type[Model]],
        pivot_table: Optional[str] = None,
    ) -> BelongsToMany:
        return BelongsToMany(self, target, pivot_table)

    def has_one_through(
        self,
        target: Union[str, Type[Model]],
        through: Union[str, Type[Model]],
    ) -> HasOneThrough:
        return HasOneThrough(self, target, through)

    def has_many_through(
        self,
        target: Union[str, Type[Model]],
        through: Union[str, Type[Model]],
    ) -> HasManyThrough:
        return HasManyThrough(self, target, through)

    # ── Identity ─────────────────────────────────────────────────────

    def is_same(self, other: Any) -> bool:
        """Same table and same id."""
        return (
            isinstance(other, Model)
            and other.table_name() == self.table_name()
            and self.has_attribute("id")
            and other.get_attribute("id") == self.id
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        if self.has_attribute("id") and other.has_attribute("id"):
            return self.is_same(other)
        return self is other

    def __hash__(self) -> int:
        if self.has_attribute("id"):
            return hash((self.table_name(), self.id))
        return object.__hash__(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.get_attribute('id')}>"

    # ── Class-level API ──────────────────────────────────────────────

    @classmethod
    def table_name(cls) -> str:
        return cls._table_name

    @classmethod
    def schema(cls) -> TableSchema:
        return cls._schema

    @classmethod
    def query(cls) -> QueryBuilder:
        """
        Start a query chain.

        Usage:
            posts = Post.query().where("views", 10, ">").order("-id").get()
        """
        return QueryBuilder(cls, db_alias=cls._db_alias)

    @classmethod
    def all(cls, *columns: str) -> Collection:
        return cls.query().select(*columns).get()

    @classmethod
    def where(cls, column: str, value: Any, operator: str = "=") -> QueryBuilder:
        return cls.query().where(column, value, operator)

    @classmethod
    def filter(cls, **lookups: Any) -> QueryBuilder:
        return cls.query().filter(**lookups)

    @classmethod
    def find(cls, id: Union[Any, List[Any]]) -> Union[Model, Collection, None]:
        """One record by id, or a Collection for a list of ids."""
        if isinstance(id, (list, tuple, set)):
            return cls.query().where_in("id", list(id)).get()
        return cls.query().where("id", id).first()

    @classmethod
    def find_or_fail(cls, id: Union[Any, List[Any]]) -> Union[Model, Collection]:
        result = cls.find(id)
        if result is None or (isinstance(result, Collection) and result.is_empty()):
            raise RecordNotFoundFault(model=cls.__name__, ids=id)
        return result

    @classmethod
    def create(cls, attributes: Optional[Mapping] = None, **kwargs: Any) -> Model:
        """Insert a record and return it with its complete attribute set."""
        instance = cls(attributes, **kwargs)
        instance.save()
        return instance

    @classmethod
    def destroy(cls, *ids: Any) -> int:
        """
        Delete records by id. Returns the number of deleted rows.

        Usage:
            Post.destroy(1)
            Post.destroy(1, 2, 3)
            Post.destroy([1, 2, 3])
        """
        if len(ids) == 1 and isinstance(ids[0], (list, tuple, set)):
            ids = tuple(ids[0])
        return cls.query().where_in("id", list(ids)).delete()

    # ── Serialization ────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Serialize attributes (and cached relations) to plain values."""
        return {key: _serialize(value) for key, value in self._attributes.items()}

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, Model):
        return value.to_dict()
    if isinstance(value, Collection):
        return value.to_list()
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value
