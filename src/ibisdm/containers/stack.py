"""
containers/stack.py - Stack and StackSet

LIFO containers backing the plan, agenda, commitments and QUD of an
information state. Both accept an optional element validator; a rejected
push raises TypeViolationError and leaves the stack untouched.

Iteration and indexing are top-first: stack[0] is the top.
"""

from __future__ import annotations

from typing import Callable, Generic, Iterable, Iterator, Optional, TypeVar

from ibisdm.exceptions import EmptyStackError, TypeViolationError

T = TypeVar("T")

Validator = Callable[[object], bool]


class Stack(Generic[T]):
    """Ordered sequence with push/pop/top at one end only."""

    def __init__(
        self,
        items: Iterable[T] = (),
        validator: Optional[Validator] = None,
    ) -> None:
        self._validator = validator
        self._items: list[T] = []          # bottom .. top
        # `items` is given top-first, matching iteration order
        for item in reversed(list(items)):
            self.push(item)

    # ── Core operations ───────────────────────────────────────────────────────

    def push(self, item: T) -> None:
        self._check(item)
        self._items.append(item)

    def pop(self) -> T:
        if not self._items:
            raise EmptyStackError("pop")
        return self._items.pop()

    def top(self) -> T:
        if not self._items:
            raise EmptyStackError("top")
        return self._items[-1]

    def clear(self) -> None:
        self._items.clear()

    def remove(self, item: T) -> None:
        """Drop every occurrence of `item`. Missing items are ignored."""
        self._items = [i for i in self._items if i != item]

    def is_empty(self) -> bool:
        return not self._items

    def copy(self) -> "Stack[T]":
        clone = type(self)(validator=self._validator)
        clone._items = list(self._items)
        return clone

    @property
    def validator(self) -> Optional[Validator]:
        return self._validator

    # ── Internals ─────────────────────────────────────────────────────────────

    def _check(self, item: T) -> None:
        if self._validator is not None and not self._validator(item):
            raise TypeViolationError(item)

    # ── Dunder ────────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[T]:
        return reversed(self._items)

    def __getitem__(self, index: int) -> T:
        return list(self)[index]

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stack):
            return NotImplemented
        return type(self) is type(other) and self._items == other._items

    def __str__(self) -> str:
        if not self._items:
            return "<[ <]"
        return "<[ " + ", ".join(str(i) for i in self) + " <]"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self)!r})"


class StackSet(Stack[T]):
    """
    Stack without duplicates.

    Pushing an element that is already present removes the earlier
    occurrence first, so the element moves to the top and every other
    element keeps its relative order.
    """

    def push(self, item: T) -> None:
        self._check(item)
        if item in self._items:
            self._items.remove(item)
        self._items.append(item)
