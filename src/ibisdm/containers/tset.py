"""
containers/tset.py - Guarded set

A set whose membership is restricted by an optional validator. Used for the
private beliefs of an information state, where only domain-valid
propositions may enter.
"""

from __future__ import annotations

from typing import Callable, Generic, Iterable, Iterator, Optional, TypeVar

from ibisdm.exceptions import TypeViolationError

T = TypeVar("T")


class TSet(Generic[T]):
    def __init__(
        self,
        items: Iterable[T] = (),
        validator: Optional[Callable[[object], bool]] = None,
    ) -> None:
        self._validator = validator
        self._items: set[T] = set()
        for item in items:
            self.insert(item)

    def insert(self, item: T) -> None:
        """Add `item`. Raises TypeViolationError, leaving the set unchanged,
        when the validator rejects it."""
        if self._validator is not None and not self._validator(item):
            raise TypeViolationError(item)
        self._items.add(item)

    # `add` reads better at some call sites
    add = insert

    def discard(self, item: T) -> None:
        self._items.discard(item)

    def clear(self) -> None:
        self._items.clear()

    def copy(self) -> "TSet[T]":
        clone: TSet[T] = TSet(validator=self._validator)
        clone._items = set(self._items)
        return clone

    def as_frozenset(self) -> frozenset[T]:
        return frozenset(self._items)

    @property
    def validator(self) -> Optional[Callable[[object], bool]]:
        return self._validator

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TSet):
            return NotImplemented
        return self._items == other._items

    def __str__(self) -> str:
        return "{" + ", ".join(sorted(str(i) for i in self._items)) + "}"

    def __repr__(self) -> str:
        return f"TSet({sorted(self._items, key=str)!r})"
