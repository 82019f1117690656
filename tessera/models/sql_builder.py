"""
Tessera SQL Builder — safe, parameterized SQL generation.

Provides a fluent builder API that produces parameterized SQL
and bind-parameter lists. All user values are bound as parameters
to prevent SQL injection.

Usage:
    from tessera.models.sql_builder import SQLBuilder

    sql, params = (
        SQLBuilder()
        .select("users.id", "users.name")
        .from_table("users")
        .where('"users"."active" = ?', True)
        .where_in("users.role", ["admin", "staff"])
        .order_by("-users.id")
        .limit(10)
        .build()
    )
    # sql = 'SELECT "users"."id", "users"."name" FROM "users"
    #        WHERE ("users"."active" = ?) AND ("users"."role" IN (?, ?))
    #        ORDER BY "users"."id" DESC LIMIT 10'
    # params = [True, "admin", "staff"]
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple


__all__ = [
    "SQLBuilder",
    "JoinClause",
    "InsertBuilder",
    "UpdateBuilder",
    "DeleteBuilder",
    "CreateTableBuilder",
    "quote_identifier",
]


def quote_identifier(name: str) -> str:
    """
    Quote a column reference.

    ``"email"`` -> ``"email"``, ``users.email`` -> ``"users"."email"``.
    Raw expressions (aggregates, aliases, ``*``) are returned untouched.
    """
    if _is_raw(name) or name.startswith('"'):
        return name
    return ".".join(f'"{part}"' for part in name.split("."))


class JoinClause:
    """
    JOIN clause with its own ON conditions and projection.

    Handed to the callback passed to ``SQLBuilder.join()``:

        builder.join("post_tag", lambda j: (
            j.on("post_tag.tag_id", "tags.id")
             .where("post_tag.post_id", 5)
             .select("post_tag.created_at AS post_tag_created_at")
        ))
    """

    def __init__(self, table: str, join_type: str = "INNER"):
        self.table = table
        self.join_type = join_type
        self._conditions: List[str] = []
        self._params: List[Any] = []
        self._columns: List[str] = []

    def on(self, left: str, right: str, operator: str = "=") -> JoinClause:
        """Correlate two columns."""
        self._conditions.append(
            f"{quote_identifier(left)} {operator} {quote_identifier(right)}"
        )
        return self

    def where(self, column: str, value: Any, operator: str = "=") -> JoinClause:
        """Compare a joined column with a bound value."""
        self._conditions.append(f"{quote_identifier(column)} {operator} ?")
        self._params.append(value)
        return self

    def select(self, *columns: str) -> JoinClause:
        """Append joined columns to the outer projection."""
        self._columns.extend(columns)
        return self

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def copy(self) -> JoinClause:
        clone = JoinClause(self.table, self.join_type)
        clone._conditions = self._conditions.copy()
        clone._params = self._params.copy()
        clone._columns = self._columns.copy()
        return clone

    def build(self) -> Tuple[str, List[Any]]:
        sql = f'{self.join_type} JOIN "{self.table}"'
        if self._conditions:
            sql += " ON " + " AND ".join(self._conditions)
        return sql, list(self._params)


class SQLBuilder:
    """
    SELECT query builder with safe parameter binding.
    """

    def __init__(self):
        self._columns: List[str] = []
        self._table: str = ""
        self._joins: List[JoinClause] = []
        self._wheres: List[str] = []
        self._params: List[Any] = []
        self._order_by: List[str] = []
        self._limit_val: Optional[int] = None
        self._offset_val: Optional[int] = None
        self._distinct: bool = False

    def select(self, *columns: str) -> SQLBuilder:
        """Set columns to select."""
        self._columns = list(columns)
        return self

    def from_table(self, table: str) -> SQLBuilder:
        """Set the FROM table."""
        self._table = table
        return self

    @property
    def table(self) -> str:
        return self._table

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    @property
    def joins(self) -> List[JoinClause]:
        return list(self._joins)

    def distinct(self) -> SQLBuilder:
        """Add DISTINCT modifier."""
        self._distinct = True
        return self

    def join(
        self,
        table: str,
        callback: Optional[Callable[[JoinClause], Any]] = None,
        join_type: str = "INNER",
    ) -> SQLBuilder:
        """Add a JOIN clause configured by ``callback``."""
        clause = JoinClause(table, join_type)
        if callback is not None:
            callback(clause)
        self._joins.append(clause)
        return self

    def left_join(self, table: str, callback: Optional[Callable[[JoinClause], Any]] = None) -> SQLBuilder:
        return self.join(table, callback, "LEFT")

    def where(self, clause: str, *args: Any) -> SQLBuilder:
        """Add a WHERE condition with parameters."""
        self._wheres.append(clause)
        self._params.extend(args)
        return self

    def where_in(self, column: str, values: Sequence[Any]) -> SQLBuilder:
        """Add a WHERE ... IN (...) clause."""
        if not values:
            self._wheres.append("1 = 0")  # Always false
            return self
        placeholders = ", ".join("?" for _ in values)
        self._wheres.append(f"{quote_identifier(column)} IN ({placeholders})")
        self._params.extend(values)
        return self

    def where_not_in(self, column: str, values: Sequence[Any]) -> SQLBuilder:
        """Add a WHERE ... NOT IN (...) clause."""
        if not values:
            self._wheres.append("1 = 1")  # Always true
            return self
        placeholders = ", ".join("?" for _ in values)
        self._wheres.append(f"{quote_identifier(column)} NOT IN ({placeholders})")
        self._params.extend(values)
        return self

    def where_between(self, column: str, low: Any, high: Any, negate: bool = False) -> SQLBuilder:
        keyword = "NOT BETWEEN" if negate else "BETWEEN"
        self._wheres.append(f"{quote_identifier(column)} {keyword} ? AND ?")
        self._params.extend([low, high])
        return self

    def where_null(self, column: str, negate: bool = False) -> SQLBuilder:
        keyword = "IS NOT NULL" if negate else "IS NULL"
        self._wheres.append(f"{quote_identifier(column)} {keyword}")
        return self

    def where_in_select(
        self,
        column: str,
        table: str,
        callback: Callable[[SQLBuilder], Any],
    ) -> SQLBuilder:
        """
        Add ``column IN (SELECT ... FROM table ...)``.

        ``callback`` receives a fresh builder already bound to ``table``
        and sets its projection and filters.
        """
        sub = SQLBuilder().from_table(table)
        callback(sub)
        sub_sql, sub_params = sub.build()
        self._wheres.append(f"{quote_identifier(column)} IN ({sub_sql})")
        self._params.extend(sub_params)
        return self

    def order_by(self, *fields: str) -> SQLBuilder:
        """
        Add ORDER BY clause.

        Prefix with '-' for DESC: order_by("-created_at", "name")
        """
        for f in fields:
            if f.startswith("-"):
                self._order_by.append(f"{quote_identifier(f[1:])} DESC")
            else:
                self._order_by.append(f"{quote_identifier(f)} ASC")
        return self

    def limit(self, n: Optional[int]) -> SQLBuilder:
        self._limit_val = n
        return self

    def offset(self, n: Optional[int]) -> SQLBuilder:
        self._offset_val = n
        return self

    def copy(self) -> SQLBuilder:
        """Independent copy; joins are copied too."""
        clone = SQLBuilder()
        clone._columns = self._columns.copy()
        clone._table = self._table
        clone._joins = [j.copy() for j in self._joins]
        clone._wheres = self._wheres.copy()
        clone._params = self._params.copy()
        clone._order_by = self._order_by.copy()
        clone._limit_val = self._limit_val
        clone._offset_val = self._offset_val
        clone._distinct = self._distinct
        return clone

    def where_sql(self) -> Tuple[str, List[Any]]:
        """WHERE fragment (without the keyword) and its params."""
        if not self._wheres:
            return "", []
        return " AND ".join(f"({w})" for w in self._wheres), list(self._params)

    def _from_clause(self, params: List[Any]) -> List[str]:
        parts = [f'FROM "{self._table}"']
        for clause in self._joins:
            join_sql, join_params = clause.build()
            parts.append(join_sql)
            params.extend(join_params)
        where_sql, where_params = self.where_sql()
        if where_sql:
            parts.append(f"WHERE {where_sql}")
            params.extend(where_params)
        return parts

    def build(self) -> Tuple[str, List[Any]]:
        """
        Build the final SQL string and parameter list.

        Returns:
            Tuple of (sql_string, params_list)
        """
        params: List[Any] = []

        # SELECT
        distinct = "DISTINCT " if self._distinct else ""
        columns = list(self._columns)
        for clause in self._joins:
            columns.extend(clause.columns)
        if columns:
            cols = ", ".join(quote_identifier(c) for c in columns)
        else:
            cols = "*"
        parts: List[str] = [f"SELECT {distinct}{cols}"]

        # FROM / JOIN / WHERE
        parts.extend(self._from_clause(params))

        # ORDER BY
        if self._order_by:
            parts.append("ORDER BY " + ", ".join(self._order_by))

        # LIMIT / OFFSET
        if self._limit_val is not None:
            parts.append(f"LIMIT {int(self._limit_val)}")
        if self._offset_val is not None:
            if self._limit_val is None:
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {int(self._offset_val)}")

        return " ".join(parts), params

    def build_count(self) -> Tuple[str, List[Any]]:
        """Build a COUNT(*) version of this query."""
        return self.build_aggregate("COUNT", "*")

    def build_aggregate(self, function: str, column: str) -> Tuple[str, List[Any]]:
        """Build ``SELECT FUNC(column)`` over this query's filters and joins."""
        params: List[Any] = []
        target = column if column == "*" else quote_identifier(column)
        parts: List[str] = [f"SELECT {function}({target})"]
        parts.extend(self._from_clause(params))
        return " ".join(parts), params


class InsertBuilder:
    """INSERT query builder."""

    def __init__(self, table: str):
        self._table = table
        self._columns: List[str] = []
        self._values: List[Any] = []

    def from_dict(self, data: Dict[str, Any]) -> InsertBuilder:
        """Set columns and values from a dict."""
        self._columns = list(data.keys())
        self._values = list(data.values())
        return self

    def build(self) -> Tuple[str, List[Any]]:
        if not self._columns:
            return f'INSERT INTO "{self._table}" DEFAULT VALUES', []
        col_names = ", ".join(f'"{c}"' for c in self._columns)
        placeholders = ", ".join("?" for _ in self._columns)
        sql = f'INSERT INTO "{self._table}" ({col_names}) VALUES ({placeholders})'
        return sql, list(self._values)


class UpdateBuilder:
    """UPDATE query builder."""

    def __init__(self, table: str):
        self._table = table
        self._sets: Dict[str, Any] = {}
        self._wheres: List[str] = []
        self._params: List[Any] = []

    def set(self, **kwargs: Any) -> UpdateBuilder:
        self._sets.update(kwargs)
        return self

    def set_dict(self, data: Dict[str, Any]) -> UpdateBuilder:
        self._sets.update(data)
        return self

    def where(self, clause: str, *args: Any) -> UpdateBuilder:
        self._wheres.append(clause)
        self._params.extend(args)
        return self

    def build(self) -> Tuple[str, List[Any]]:
        set_parts = [f'"{k}" = ?' for k in self._sets]
        set_params = list(self._sets.values())
        sql = f'UPDATE "{self._table}" SET {", ".join(set_parts)}'
        params = set_params.copy()
        if self._wheres:
            sql += " WHERE " + _join_conditions(self._wheres)
            params.extend(self._params)
        return sql, params


class DeleteBuilder:
    """DELETE query builder."""

    def __init__(self, table: str):
        self._table = table
        self._wheres: List[str] = []
        self._params: List[Any] = []

    def where(self, clause: str, *args: Any) -> DeleteBuilder:
        self._wheres.append(clause)
        self._params.extend(args)
        return self

    def build(self) -> Tuple[str, List[Any]]:
        sql = f'DELETE FROM "{self._table}"'
        if self._wheres:
            sql += " WHERE " + _join_conditions(self._wheres)
        return sql, list(self._params)


class CreateTableBuilder:
    """CREATE TABLE DDL builder."""

    def __init__(self, table: str, if_not_exists: bool = True):
        self._table = table
        self._if_not_exists = if_not_exists
        self._columns: List[str] = []

    def column(self, definition: str) -> CreateTableBuilder:
        self._columns.append(definition)
        return self

    def build(self) -> str:
        ine = "IF NOT EXISTS " if self._if_not_exists else ""
        body = ",\n  ".join(self._columns)
        return f'CREATE TABLE {ine}"{self._table}" (\n  {body}\n);'


def _is_raw(col: str) -> bool:
    """Check if a column reference is a raw expression (contains parens, *, spaces)."""
    return any(c in col for c in ("(", ")", "*", " "))


def _join_conditions(conditions: List[str]) -> str:
    """AND conditions together; a lone condition is emitted as given."""
    if len(conditions) == 1:
        return conditions[0]
    return " AND ".join(f"({c})" for c in conditions)
