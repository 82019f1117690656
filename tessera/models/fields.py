"""
Tessera Model Fields — column codecs.

Every field knows how to turn a raw stored value into a typed Python value
(``to_python``), how to turn it back (``to_db``) and how to declare itself
in DDL (``sql_column_def``):

    class Post(Model):
        title = CharField(max_length=200)
        body = TextField(null=True)
        published_on = DateField(null=True)
        meta = JSONField(default=dict)

``to_python`` is strict: a raw value that cannot represent the declared
type raises ``CastFault`` instead of being coerced to ``None``.
"""

from __future__ import annotations

import copy
import datetime
import decimal
import json
from typing import Any, Optional, Type, TYPE_CHECKING

from ..faults.domains import CastFault

if TYPE_CHECKING:
    from .base import Model

__all__ = [
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
]


# ── Sentinel ─────────────────────────────────────────────────────────────────

class _Unset:
    """Sentinel for distinguishing 'not set' from None."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "<UNSET>"

    def __bool__(self):
        return False

UNSET = _Unset()


class Field:
    """
    Base column codec — all Tessera fields inherit from this.

    Core parameters (shared by every field):
        null        – Allow NULL in database (default False)
        default     – Default value or callable
        unique      – Add UNIQUE constraint
        primary_key – Mark as primary key
    """

    _field_type: str = "FIELD"
    _python_type: type = object

    # Counter for field ordering
    _creation_counter = 0

    def __init__(
        self,
        *,
        null: bool = False,
        default: Any = UNSET,
        unique: bool = False,
        primary_key: bool = False,
    ):
        self.null = null
        self.default = default
        self.unique = unique
        self.primary_key = primary_key

        # Set when bound to a table
        self.name: str = ""
        self.model: Optional[Type[Model]] = None

        self._order = Field._creation_counter
        Field._creation_counter += 1

    def __set_name__(self, owner: type, name: str) -> None:
        self.bind(name)

    def bind(self, name: str) -> Field:
        self.name = name
        return self

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.name}>"

    @property
    def column_name(self) -> str:
        return self.name

    def has_default(self) -> bool:
        """Check if field has a default value."""
        return self.default is not UNSET

    def get_default(self) -> Any:
        """Get default value, calling it if callable."""
        if self.default is UNSET:
            return None
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def to_python(self, value: Any) -> Any:
        """Convert database value to Python object."""
        return value

    def to_db(self, value: Any) -> Any:
        """Convert Python value to database-ready value."""
        return value

    def _fail(self, value: Any) -> CastFault:
        return CastFault(
            column=self.name or self.__class__.__name__,
            value=value,
            expected=self._python_type.__name__,
        )

    def sql_type(self, dialect: str = "sqlite") -> str:
        """Return SQL type string for this field."""
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement sql_type()"
        )

    def sql_column_def(self, dialect: str = "sqlite") -> str:
        """Generate full SQL column definition."""
        parts = [f'"{self.column_name}"', self.sql_type(dialect)]

        if self.primary_key:
            parts.append("PRIMARY KEY")
            if isinstance(self, AutoField):
                parts.append("AUTOINCREMENT")
        if self.unique and not self.primary_key:
            parts.append("UNIQUE")
        if not self.null and not self.primary_key:
            parts.append("NOT NULL")
        if self.has_default():
            sql_default = self._sql_default()
            if sql_default is not None:
                parts.append(f"DEFAULT {sql_default}")

        return " ".join(parts)

    def _sql_default(self) -> Optional[str]:
        """Get SQL DEFAULT clause value."""
        if self.default is UNSET or callable(self.default):
            return None
        if isinstance(self.default, bool):
            return "1" if self.default else "0"
        if isinstance(self.default, (int, float)):
            return str(self.default)
        if isinstance(self.default, str):
            escaped = self.default.replace("'", "''")
            return f"'{escaped}'"
        return None

    def clone(self) -> Field:
        """Create a deep copy of this field."""
        return copy.deepcopy(self)


# ═══════════════════════════════════════════════════════════════════════════════
# NUMERIC FIELDS
# ═══════════════════════════════════════════════════════════════════════════════


class IntegerField(Field):
    """Integer field."""

    _field_type = "INTEGER"
    _python_type = int

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if value.is_integer():
                return int(value)
            raise self._fail(value)
        if isinstance(value, (str, bytes)):
            try:
                return int(value)
            except ValueError:
                raise self._fail(value) from None
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        return self.to_python(value)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "INTEGER"


class AutoField(IntegerField):
    """Auto-incrementing integer primary key."""

    _field_type = "AUTO"

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("primary_key", True)
        kwargs.setdefault("null", True)
        super().__init__(**kwargs)


class FloatField(Field):
    """Floating-point field."""

    _field_type = "FLOAT"
    _python_type = float

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            raise self._fail(value)
        if isinstance(value, (int, float, decimal.Decimal)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                raise self._fail(value) from None
        raise self._fail(value)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "REAL"


class DecimalField(Field):
    """Fixed-precision decimal field — stored as TEXT on SQLite."""

    _field_type = "DECIMAL"
    _python_type = decimal.Decimal

    def __init__(self, *, max_digits: int = 10, decimal_places: int = 2, **kwargs: Any):
        self.max_digits = max_digits
        self.decimal_places = decimal_places
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, decimal.Decimal):
            return value
        if isinstance(value, bool):
            raise self._fail(value)
        if isinstance(value, (int, float, str)):
            try:
                return decimal.Decimal(str(value))
            except decimal.InvalidOperation:
                raise self._fail(value) from None
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        return str(self.to_python(value))

    def sql_type(self, dialect: str = "sqlite") -> str:
        # NUMERIC affinity would turn "12.50" into the REAL 12.5
        if dialect == "sqlite":
            return "TEXT"
        return f"DECIMAL({self.max_digits}, {self.decimal_places})"


# ═══════════════════════════════════════════════════════════════════════════════
# TEXT FIELDS
# ═══════════════════════════════════════════════════════════════════════════════


class CharField(Field):
    """Bounded string field."""

    _field_type = "CHAR"
    _python_type = str

    def __init__(self, *, max_length: int = 255, **kwargs: Any):
        self.max_length = max_length
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                raise self._fail(value) from None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise self._fail(value)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return f"VARCHAR({self.max_length})"


class TextField(CharField):
    """Unbounded text field."""

    _field_type = "TEXT"

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "TEXT"


class BooleanField(Field):
    """Boolean field — stored as INTEGER 0/1 in SQLite."""

    _field_type = "BOOL"
    _python_type = bool

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            if value.lower() in ("true", "1"):
                return True
            if value.lower() in ("false", "0"):
                return False
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        return 1 if value else 0

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "INTEGER"


# ═══════════════════════════════════════════════════════════════════════════════
# TEMPORAL FIELDS
# ═══════════════════════════════════════════════════════════════════════════════


class DateField(Field):
    """Date field (year, month, day) — ISO text on SQLite."""

    _field_type = "DATE"
    _python_type = datetime.date

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        if isinstance(value, str):
            try:
                return datetime.date.fromisoformat(value[:10])
            except ValueError:
                raise self._fail(value) from None
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return value.date().isoformat()
        if isinstance(value, datetime.date):
            return value.isoformat()
        return str(value)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "DATE"


class DateTimeField(Field):
    """Date and time field — ``YYYY-MM-DD HH:MM:SS`` text on SQLite."""

    _field_type = "DATETIME"
    _python_type = datetime.datetime

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        if isinstance(value, str):
            try:
                return datetime.datetime.fromisoformat(value)
            except ValueError:
                raise self._fail(value) from None
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, datetime.date):
            return f"{value.isoformat()} 00:00:00"
        return str(value)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "DATETIME"


class TimeField(Field):
    """Time-of-day field."""

    _field_type = "TIME"
    _python_type = datetime.time

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.time):
            return value
        if isinstance(value, str):
            try:
                return datetime.time.fromisoformat(value)
            except ValueError:
                raise self._fail(value) from None
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime.time):
            return value.isoformat()
        return str(value)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "TIME"


# ═══════════════════════════════════════════════════════════════════════════════
# STRUCTURED DATA
# ═══════════════════════════════════════════════════════════════════════════════


class JSONField(Field):
    """JSON data field — TEXT on SQLite."""

    _field_type = "JSON"
    _python_type = dict

    def __init__(self, *, encoder: Optional[type] = None, **kwargs: Any):
        self.encoder = encoder
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            return value
        if isinstance(value, (str, bytes)):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                raise self._fail(value) from None
        raise self._fail(value)

    def to_db(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return json.dumps(value, cls=self.encoder)

    def sql_type(self, dialect: str = "sqlite") -> str:
        return "TEXT"
