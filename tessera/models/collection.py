"""
Tessera Collection — ordered, type-homogeneous set of records.

Every multi-row query returns a Collection; it is also usable as a plain
in-memory record set:

    posts = Post.query().get()
    popular = posts.where("views", ">", 1000).sort("views", desc=True)
    titles = popular.pluck("title")

Selecting operations (filter, where*, except_, only, diff, reject, sort,
slice, skip, take) return NEW collections. Mutating operations (push,
prepend, concat, merge, reverse, shuffle) change the collection in place
and return it; shift and pop return the removed record.

Every element's runtime type equals ``model_class``. Adding anything else
raises ``CollectionTypeFault`` and leaves the collection unmodified.
"""

from __future__ import annotations

import functools
import json
import operator as _op
import random as _random
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
    TYPE_CHECKING,
)

from ..faults.domains import CollectionTypeFault, UsageFault

if TYPE_CHECKING:
    from .base import Model

__all__ = ["Collection", "COMPARISON_OPERATORS"]


def _strict_eq(left: Any, right: Any) -> bool:
    return type(left) is type(right) and left == right


def _ordered(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    # None is not ordered against anything
    def check(left: Any, right: Any) -> bool:
        if left is None or right is None:
            return False
        return compare(left, right)
    return check


COMPARISON_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "=": _op.eq,
    "==": _op.eq,
    "!=": _op.ne,
    "<>": _op.ne,
    "<": _ordered(_op.lt),
    ">": _ordered(_op.gt),
    "<=": _ordered(_op.le),
    ">=": _ordered(_op.ge),
    "===": _strict_eq,
    "!==": lambda left, right: not _strict_eq(left, right),
}


class Collection:
    """
    Ordered, typed container of records.

    Supports ``len()``, iteration, ``in``, integer and slice indexing
    (slices return a Collection) and type-checked item assignment.
    """

    __slots__ = ("_model_class", "_items")

    def __init__(self, model_class: Type[Model], items: Optional[Iterable[Model]] = None):
        self._model_class = model_class
        self._items: List[Model] = []
        if items is not None:
            items = list(items)
            self._check("__init__", items)
            self._items = items

    # ── Type discipline ──────────────────────────────────────────────

    @property
    def model_class(self) -> Type[Model]:
        return self._model_class

    def _check(self, operation: str, items: Sequence[Any]) -> None:
        for item in items:
            if type(item) is not self._model_class:
                raise CollectionTypeFault(
                    operation=operation,
                    expected=self._model_class.__name__,
                    received=type(item).__name__,
                )

    def _new(self, items: Iterable[Model]) -> Collection:
        new = Collection(self._model_class)
        new._items = list(items)
        return new

    # ── Python protocol ──────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Model]:
        return iter(self._items)

    def __contains__(self, item: Any) -> bool:
        return item in self._items

    def __getitem__(self, index: Union[int, slice]) -> Union[Model, Collection]:
        if isinstance(index, slice):
            return self._new(self._items[index])
        return self._items[index]

    def __setitem__(self, index: int, item: Model) -> None:
        self._check("__setitem__", [item])
        self._items[index] = item

    def __delitem__(self, index: Union[int, slice]) -> None:
        del self._items[index]

    def __repr__(self) -> str:
        return f"<Collection {self._model_class.__name__} ({len(self._items)} items)>"

    # ── Access ───────────────────────────────────────────────────────

    def all(self) -> List[Model]:
        return list(self._items)

    def get(self, index: int, default: Any = None) -> Any:
        try:
            return self._items[index]
        except IndexError:
            return default

    def first(self, predicate: Optional[Callable[[Model], bool]] = None) -> Optional[Model]:
        for item in self._items:
            if predicate is None or predicate(item):
                return item
        return None

    def last(self, predicate: Optional[Callable[[Model], bool]] = None) -> Optional[Model]:
        for item in reversed(self._items):
            if predicate is None or predicate(item):
                return item
        return None

    def find(self, id: Any) -> Optional[Model]:
        """Record whose ``id`` equals ``id``, or None."""
        return self.first(lambda item: item.id == id)

    def first_where(self, key: str, *args: Any) -> Optional[Model]:
        return self.where(key, *args).first()

    def search(self, key: str, value: Any) -> Optional[int]:
        """Index of the first record whose ``key`` is strictly ``value``."""
        for index, item in enumerate(self._items):
            if _strict_eq(getattr(item, key), value):
                return index
        return None

    def random(self, size: int = 1) -> Union[Model, Collection, None]:
        """One random record, or a Collection of ``size`` distinct records."""
        if size == 1:
            return _random.choice(self._items) if self._items else None
        if size > len(self._items):
            raise UsageFault(
                operation="Collection.random",
                reason=f"requested {size} items from a collection of {len(self._items)}",
            )
        return self._new(_random.sample(self._items, size))

    def is_empty(self) -> bool:
        return not self._items

    # ── Inspection ───────────────────────────────────────────────────

    def contains(self, key: str, value: Any) -> bool:
        return any(
            item.has_attribute(key) and getattr(item, key) == value
            for item in self._items
        )

    def contains_strict(self, key: str, value: Any) -> bool:
        return any(
            item.has_attribute(key) and _strict_eq(getattr(item, key), value)
            for item in self._items
        )

    def has(self, key: str) -> bool:
        """True when every record has ``key`` set."""
        return all(item.has_attribute(key) for item in self._items)

    def every(self, predicate: Callable[[Model], bool]) -> bool:
        return all(predicate(item) for item in self._items)

    def keys(self) -> List[str]:
        """Attribute names of the first record."""
        first = self.first()
        return list(first.get_attributes()) if first is not None else []

    def keys_by(self) -> Dict[str, List[Any]]:
        return {key: self.pluck(key) for key in self.keys()}

    def duplicates(self, key: str) -> List[Any]:
        """Values of ``key`` that occur more than once, in order of first repeat."""
        seen: List[Any] = []
        repeated: List[Any] = []
        for value in self.pluck(key):
            if value in seen:
                if value not in repeated:
                    repeated.append(value)
            else:
                seen.append(value)
        return repeated

    # ── Projection & aggregation ─────────────────────────────────────

    def pluck(self, key: str) -> List[Any]:
        return [getattr(item, key) for item in self._items]

    def values(self) -> List[Dict[str, Any]]:
        return [item.get_attributes() for item in self._items]

    def map(self, fn: Callable[[Model], Any]) -> List[Any]:
        return [fn(item) for item in self._items]

    def each(self, fn: Callable[[Model], Any]) -> Collection:
        """Call ``fn`` on every record; returning ``False`` stops the walk."""
        for item in self._items:
            if fn(item) is False:
                break
        return self

    def reduce(self, fn: Callable[[Any, Model], Any], initial: Any = None) -> Any:
        return functools.reduce(fn, self._items, initial)

    def join(self, key: str, glue: str = ", ") -> str:
        return glue.join(str(value) for value in self.pluck(key))

    def _present(self, key: str) -> List[Any]:
        return [value for value in self.pluck(key) if value is not None]

    def sum(self, key: str) -> Any:
        return sum(self._present(key))

    def avg(self, key: str) -> Optional[float]:
        present = self._present(key)
        if not present:
            return None
        return sum(present) / len(present)

    def min(self, key: str) -> Any:
        present = self._present(key)
        return min(present) if present else None

    def max(self, key: str) -> Any:
        present = self._present(key)
        return max(present) if present else None

    # ── Selecting (return new Collection) ────────────────────────────

    def filter(self, predicate: Optional[Callable[[Model], bool]] = None) -> Collection:
        if predicate is None:
            return self._new(item for item in self._items if item)
        return self._new(item for item in self._items if predicate(item))

    def reject(self, predicate: Callable[[Model], bool]) -> Collection:
        return self._new(item for item in self._items if not predicate(item))

    def partition(self, predicate: Callable[[Model], bool]) -> Tuple[Collection, Collection]:
        passed, failed = [], []
        for item in self._items:
            (passed if predicate(item) else failed).append(item)
        return self._new(passed), self._new(failed)

    def diff(self, other: Collection, key: str = "id") -> Collection:
        """Records whose ``key`` value does not appear in ``other``."""
        excluded = other.pluck(key)
        return self._new(item for item in self._items if getattr(item, key) not in excluded)

    def except_(self, *keys: str) -> Collection:
        """Copies of every record without ``keys``."""
        return self._new(item.copy().except_attributes(*keys) for item in self._items)

    def only(self, *keys: str) -> Collection:
        """Copies of every record keeping only ``keys``."""
        return self._new(item.copy().only_attributes(*keys) for item in self._items)

    def sort(self, key: str, desc: bool = False) -> Collection:
        """
        Stable sort by one attribute, ascending unless ``desc``.

        ``None`` values sort after every other value when ascending.
        """
        present = [item for item in self._items if getattr(item, key) is not None]
        missing = [item for item in self._items if getattr(item, key) is None]
        ordered = sorted(present, key=lambda item: getattr(item, key), reverse=desc)
        return self._new(ordered + missing if not desc else missing + ordered)

    def slice(self, offset: int, length: Optional[int] = None) -> Collection:
        end = None if length is None else offset + length
        return self._new(self._items[offset:end])

    def skip(self, count: int) -> Collection:
        return self._new(self._items[count:])

    def take(self, count: int) -> Collection:
        """First ``count`` records; a negative count takes from the end."""
        if count < 0:
            return self._new(self._items[count:])
        return self._new(self._items[:count])

    def chunk(self, size: int) -> List[Collection]:
        if size < 1:
            raise UsageFault(operation="Collection.chunk", reason="size must be at least 1")
        return [self._new(self._items[i:i + size]) for i in range(0, len(self._items), size)]

    def split(self, groups: int) -> List[Collection]:
        """Split into ``groups`` collections, earlier groups taking the remainder."""
        if groups < 1:
            raise UsageFault(operation="Collection.split", reason="groups must be at least 1")
        base, remainder = divmod(len(self._items), groups)
        result: List[Collection] = []
        start = 0
        for index in range(groups):
            size = base + (1 if index < remainder else 0)
            if size == 0:
                break
            result.append(self._new(self._items[start:start + size]))
            start += size
        return result

    # ── where family ─────────────────────────────────────────────────

    def where(self, key: str, *args: Any) -> Collection:
        """
        Filter by one attribute.

            where("active")             -> where_truthy("active")
            where("age", 18)            -> where_equals("age", 18)
            where("age", ">", 18)       -> where_compare("age", ">", 18)
        """
        if not args:
            return self.where_truthy(key)
        if len(args) == 1:
            return self.where_equals(key, args[0])
        if len(args) == 2:
            return self.where_compare(key, args[0], args[1])
        raise UsageFault(
            operation="Collection.where",
            reason=f"accepts at most 3 arguments, got {len(args) + 1}",
        )

    def where_truthy(self, key: str) -> Collection:
        return self._new(item for item in self._items if getattr(item, key))

    def where_equals(self, key: str, value: Any) -> Collection:
        return self._new(item for item in self._items if getattr(item, key) == value)

    def where_compare(self, key: str, operator: str, value: Any) -> Collection:
        compare = COMPARISON_OPERATORS.get(operator)
        if compare is None:
            raise UsageFault(
                operation="Collection.where",
                reason=f"unsupported operator {operator!r}; expected one of {sorted(COMPARISON_OPERATORS)}",
            )
        return self._new(item for item in self._items if compare(getattr(item, key), value))

    def where_between(self, key: str, bounds: Sequence[Any]) -> Collection:
        low, high = bounds[0], bounds[-1]
        return self.where_compare(key, ">=", low).where_compare(key, "<=", high)

    def where_not_between(self, key: str, bounds: Sequence[Any]) -> Collection:
        low, high = bounds[0], bounds[-1]
        below = COMPARISON_OPERATORS["<"]
        above = COMPARISON_OPERATORS[">"]
        return self._new(
            item for item in self._items
            if below(getattr(item, key), low) or above(getattr(item, key), high)
        )

    def where_in(self, key: str, values: Iterable[Any]) -> Collection:
        values = list(values)
        return self._new(item for item in self._items if getattr(item, key) in values)

    def where_not_in(self, key: str, values: Iterable[Any]) -> Collection:
        values = list(values)
        return self._new(item for item in self._items if getattr(item, key) not in values)

    def where_null(self, key: str) -> Collection:
        return self._new(item for item in self._items if getattr(item, key) is None)

    def where_not_null(self, key: str) -> Collection:
        return self._new(item for item in self._items if getattr(item, key) is not None)

    # ── Mutating (in place, return self) ─────────────────────────────

    def push(self, *items: Model) -> Collection:
        self._check("push", items)
        self._items.extend(items)
        return self

    def prepend(self, item: Model) -> Collection:
        self._check("prepend", [item])
        self._items.insert(0, item)
        return self

    def concat(self, items: Iterable[Model]) -> Collection:
        items = list(items)
        self._check("concat", items)
        self._items.extend(items)
        return self

    def merge(self, other: Collection) -> Collection:
        if other.model_class is not self._model_class:
            raise CollectionTypeFault(
                operation="merge",
                expected=self._model_class.__name__,
                received=other.model_class.__name__,
            )
        self._items.extend(other.all())
        return self

    def reverse(self) -> Collection:
        self._items.reverse()
        return self

    def shuffle(self) -> Collection:
        _random.shuffle(self._items)
        return self

    def shift(self) -> Optional[Model]:
        return self._items.pop(0) if self._items else None

    def pop(self) -> Optional[Model]:
        return self._items.pop() if self._items else None

    # ── Serialization ────────────────────────────────────────────────

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self._items]

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_list(), **kwargs)
