"""
semantics/domain.py - Dialogue Domain

The Domain is the immutable vocabulary a dialogue is about:

  - zero-place predicates          e.g. {"return"}
  - one-place predicates → sort    e.g. {"dest": "location"}
  - sort → individuals             e.g. {"location": {"paris", "london"}}

It is validated eagerly at construction: a bad name, a predicate declared
with two arities, an individual listed under two sorts, or a predicate over
an undeclared sort raises DomainConfigError before any dialogue starts.

A domain may also carry a plan library: for a given question, the plan the
system follows to answer it. Plans are attached with with_plans(), which
returns a new Domain.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

from ibisdm.exceptions import DomainConfigError, DomainViolationError

if TYPE_CHECKING:
    from ibisdm.dialogue.moves import PlanConstructor
    from ibisdm.semantics.types import Question


# ─────────────────────────────────────────────────────────────────────────────
# Atoms
# ─────────────────────────────────────────────────────────────────────────────

RESERVED_ATOMS = frozenset({"yes", "no"})

_ATOM_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_\-+:]*$")


def is_atom(name: Any) -> bool:
    """True for a usable predicate / sort / individual name."""
    return (
        isinstance(name, str)
        and name not in RESERVED_ATOMS
        and _ATOM_RE.match(name) is not None
    )


def _require_atom(name: Any, what: str) -> str:
    if not is_atom(name):
        raise DomainConfigError(
            f"{what} name {name!r} is not a valid atom "
            f"(letter first, then letters, digits or _-+:; 'yes'/'no' reserved)"
        )
    return name


def _unique(names: Iterable[str], what: str) -> list[str]:
    seen: list[str] = []
    for n in names:
        if n in seen:
            raise DomainConfigError(f"Duplicate {what} '{n}'")
        seen.append(n)
    return seen


# ─────────────────────────────────────────────────────────────────────────────
# Domain
# ─────────────────────────────────────────────────────────────────────────────

class Domain:
    def __init__(
        self,
        preds0: Iterable[str],
        preds1: Mapping[str, str],
        sorts: Mapping[str, Iterable[str]],
    ) -> None:
        p0 = _unique(preds0, "zero-place predicate")
        for name in p0:
            _require_atom(name, "Predicate")

        for pred, sort in preds1.items():
            _require_atom(pred, "Predicate")
            if pred in p0:
                raise DomainConfigError(
                    f"Predicate '{pred}' is declared both with zero and one argument"
                )
            if sort not in sorts:
                raise DomainConfigError(
                    f"Predicate '{pred}' refers to undeclared sort '{sort}'"
                )

        individuals: dict[str, str] = {}
        frozen_sorts: dict[str, frozenset[str]] = {}
        for sort, members in sorts.items():
            _require_atom(sort, "Sort")
            names = _unique(members, f"individual in sort '{sort}'")
            for ind in names:
                _require_atom(ind, "Individual")
                if ind in individuals:
                    raise DomainConfigError(
                        f"Individual '{ind}' belongs to both "
                        f"'{individuals[ind]}' and '{sort}'"
                    )
                individuals[ind] = sort
            frozen_sorts[sort] = frozenset(names)

        self._preds0 = frozenset(p0)
        self._preds1 = MappingProxyType(dict(preds1))
        self._sorts = MappingProxyType(frozen_sorts)
        self._individuals = MappingProxyType(individuals)
        self._plans: Mapping["Question", tuple["PlanConstructor", ...]] = MappingProxyType({})

    # ── Vocabulary ────────────────────────────────────────────────────────────

    @property
    def preds0(self) -> frozenset[str]:
        return self._preds0

    @property
    def preds1(self) -> Mapping[str, str]:
        return self._preds1

    @property
    def sorts(self) -> Mapping[str, frozenset[str]]:
        return self._sorts

    @property
    def individuals(self) -> Mapping[str, str]:
        """Derived index: individual → sort."""
        return self._individuals

    def arity(self, pred: str) -> Optional[int]:
        if pred in self._preds0:
            return 0
        if pred in self._preds1:
            return 1
        return None

    def sort_of(self, individual: str) -> Optional[str]:
        return self._individuals.get(individual)

    def sort_of_pred(self, pred: str) -> Optional[str]:
        return self._preds1.get(pred)

    def is_individual(self, name: str) -> bool:
        return name in self._individuals

    def check_predication(self, pred: str, args: Sequence[str]) -> None:
        """Raise DomainViolationError unless `pred(args...)` is well-formed."""
        arity = self.arity(pred)
        if arity is None:
            raise DomainViolationError(f"Undeclared predicate '{pred}'")
        if len(args) != arity:
            raise DomainViolationError(
                f"Predicate '{pred}' takes {arity} argument(s), got {len(args)}"
            )
        if arity == 1:
            expected = self._preds1[pred]
            actual = self.sort_of(args[0])
            if actual != expected:
                raise DomainViolationError(
                    f"'{args[0]}' is not of sort '{expected}' required by '{pred}'"
                )

    def admits(self, pred: str, args: Sequence[str]) -> bool:
        try:
            self.check_predication(pred, args)
        except DomainViolationError:
            return False
        return True

    # ── Plan library ──────────────────────────────────────────────────────────

    def with_plans(
        self, plans: Mapping["Question", Sequence["PlanConstructor"]]
    ) -> "Domain":
        """Return a copy of this domain with `plans` merged into its library."""
        clone = object.__new__(Domain)
        clone.__dict__.update(self.__dict__)
        merged = dict(self._plans)
        for question, steps in plans.items():
            merged[question] = tuple(steps)
        clone._plans = MappingProxyType(merged)
        return clone

    def get_plan(self, question: "Question") -> Optional[tuple["PlanConstructor", ...]]:
        return self._plans.get(question)

    @property
    def plans(self) -> Mapping["Question", tuple["PlanConstructor", ...]]:
        return self._plans

    # ── Dunder ────────────────────────────────────────────────────────────────

    def __repr__(self) -> str:
        return (
            f"<Domain preds0={len(self._preds0)} preds1={len(self._preds1)} "
            f"sorts={len(self._sorts)} plans={len(self._plans)}>"
        )
