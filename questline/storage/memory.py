"""
In-memory table implementation.

Rows are deep-copied on the way in and out, so callers can never mutate
stored state by holding on to a returned object.
"""
import copy
from operator import attrgetter
from typing import Any, Callable, Dict, List, Optional, Union

from questline.storage.gateway import SINGLETON_KEY, Table

KeySpec = Union[str, Callable[[Any], str]]


def singleton_key(_entity: Any) -> str:
    return SINGLETON_KEY


def _sort_value(value: Any):
    # None sorts first without comparing against real values
    return (value is not None, value if value is not None else 0)


class MemoryTable(Table):
    """Dict-backed table. `writes` counts every put/delete that reached it."""

    def __init__(self, key: KeySpec = "id", name: str = ""):
        self.name = name
        self._key_of: Callable[[Any], str] = attrgetter(key) if isinstance(key, str) else key
        self._rows: Dict[str, Any] = {}
        self.writes = 0

    def key_of(self, entity: Any) -> str:
        return self._key_of(entity)

    def get(self, key: str) -> Optional[Any]:
        row = self._rows.get(key)
        return copy.deepcopy(row) if row is not None else None

    def get_first(self) -> Optional[Any]:
        for row in self._rows.values():
            return copy.deepcopy(row)
        return None

    def put(self, entity: Any) -> None:
        self._rows[self.key_of(entity)] = copy.deepcopy(entity)
        self.writes += 1
        self._after_write()

    def delete(self, key: str) -> None:
        if key in self._rows:
            del self._rows[key]
            self.writes += 1
            self._after_write()

    def scan_by_index_range(self, field: str, lo: Any, hi: Any) -> List[Any]:
        getter = attrgetter(field)
        rows = [
            row for row in self._rows.values()
            if getter(row) is not None and lo <= getter(row) <= hi
        ]
        rows.sort(key=getter)
        return copy.deepcopy(rows)

    def count(self, predicate: Optional[Callable[[Any], bool]] = None) -> int:
        if predicate is None:
            return len(self._rows)
        return sum(1 for row in self._rows.values() if predicate(row))

    def list_all(self) -> List[Any]:
        return copy.deepcopy(list(self._rows.values()))

    def list_ordered_by(self, field: str, descending: bool = False) -> List[Any]:
        getter = attrgetter(field)
        rows = sorted(self._rows.values(), key=lambda r: _sort_value(getter(r)), reverse=descending)
        return copy.deepcopy(rows)

    def _after_write(self) -> None:
        """Hook for persistent subclasses."""
