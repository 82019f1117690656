"""
Tessera Model System — active records over a typed query layer.

Usage:
    from tessera.models import Model, relation
    from tessera.models.fields import CharField, IntegerField

    class User(Model):
        name = CharField(max_length=150)
        country_id = IntegerField(null=True)

        @relation
        def posts(self):
            return self.has_many("Post")

Public API:
    - Model, relation: Record base class and relation accessor marker
    - Fields: column codecs (Integer, Char, DateTime, JSON, ...)
    - QueryBuilder: immutable chainable query
    - Relations: BelongsTo, HasMany, BelongsToMany, HasOneThrough, HasManyThrough
    - Collection: typed ordered record list
    - ModelRegistry / SchemaRegistry: name and table lookups
"""

from .base import Model, ModelMeta, relation
from .collection import Collection
from .fields import (
    UNSET,
    Field,
    AutoField,
    IntegerField,
    FloatField,
    DecimalField,
    CharField,
    TextField,
    BooleanField,
    DateField,
    DateTimeField,
    TimeField,
    JSONField,
)
from .query import QueryBuilder, OPERATORS
from .registry import ModelRegistry
from .relations import (
    Relation,
    BelongsTo,
    HasMany,
    BelongsToMany,
    HasOneThrough,
    HasManyThrough,
)
from .schema import SchemaRegistry, TableSchema
from .sql_builder import (
    SQLBuilder,
    JoinClause,
    InsertBuilder,
    UpdateBuilder,
    DeleteBuilder,
    CreateTableBuilder,
)

__all__ = [
    # Records
    "Model",
    "ModelMeta",
    "relation",
    "Collection",
    # Fields
    "UNSET",
    "Field",
    "AutoField",
    "IntegerField",
    "FloatField",
    "DecimalField",
    "CharField",
    "TextField",
    "BooleanField",
    "DateField",
    "DateTimeField",
    "TimeField",
    "JSONField",
    # Queries
    "QueryBuilder",
    "OPERATORS",
    "SQLBuilder",
    "JoinClause",
    "InsertBuilder",
    "UpdateBuilder",
    "DeleteBuilder",
    "CreateTableBuilder",
    # Relations
    "Relation",
    "BelongsTo",
    "HasMany",
    "BelongsToMany",
    "HasOneThrough",
    "HasManyThrough",
    # Registries
    "ModelRegistry",
    "SchemaRegistry",
    "TableSchema",
]
