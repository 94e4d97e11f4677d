"""
Persistence gateway contract.

The core only talks to storage through this narrow table interface:
keyed get/put/delete, a singleton accessor, inclusive range scans over an
attribute, predicate counts and ordered listing.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")

SINGLETON_KEY = "main"


class Table(ABC, Generic[T]):
    """One entity table, keyed by id."""

    @abstractmethod
    def get(self, key: str) -> Optional[T]:
        ...

    @abstractmethod
    def get_first(self) -> Optional[T]:
        """First stored row; used for singletons (character, streaks)."""

    @abstractmethod
    def put(self, entity: T) -> None:
        """Upsert by key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def scan_by_index_range(self, field: str, lo: Any, hi: Any) -> List[T]:
        """Rows whose `field` lies in [lo, hi], ordered by that field."""

    @abstractmethod
    def count(self, predicate: Optional[Callable[[T], bool]] = None) -> int:
        ...

    @abstractmethod
    def list_all(self) -> List[T]:
        ...

    @abstractmethod
    def list_ordered_by(self, field: str, descending: bool = False) -> List[T]:
        ...
