"""
Tessera inflection helpers — table and key names derived from type names.

    tablerize("PostTag")           -> "post_tags"
    singularize("histories")       -> "history"
    pivot_table("tags", "posts")   -> "post_tag"
"""

from __future__ import annotations

import re
from functools import lru_cache

import inflect

__all__ = ["tablerize", "singularize", "pluralize", "snake_case", "pivot_table", "foreign_key"]

p = inflect.engine()

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(name: str) -> str:
    """``PostTag`` -> ``post_tag``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _last_word(word: str):
    head, sep, tail = word.rpartition("_")
    return head + sep, tail


@lru_cache(maxsize=512)
def singularize(word: str) -> str:
    """Singularize the last word of a snake_case name; singular input is returned as is."""
    head, tail = _last_word(word)
    singular = p.singular_noun(tail)
    return head + (singular or tail)


@lru_cache(maxsize=512)
def pluralize(word: str) -> str:
    """Pluralize the last word of a snake_case name."""
    head, tail = _last_word(word)
    return head + p.plural_noun(tail)


def tablerize(type_name: str) -> str:
    """Derive the storage table name of a record type."""
    return pluralize(snake_case(type_name))


def foreign_key(table: str) -> str:
    """Column on another table that points at rows of ``table``."""
    return f"{singularize(table)}_id"


def pivot_table(first: str, second: str) -> str:
    """Default pivot table joining two tables: singularized, sorted, ``_``-joined."""
    return "_".join(sorted((singularize(first), singularize(second))))
