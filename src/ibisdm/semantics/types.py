"""
semantics/types.py - Propositions, Questions and Answers

The semantic objects exchanged in a dialogue. All are immutable and
hashable, so they can live in TSets and StackSets and key the domain's
plan library.

Construct them through the `create(domain, ...)` factories: those check
the object against the domain and raise DomainViolationError, so nothing
ill-formed can enter an information state.

Text forms:
    dest(paris)    -return()        propositions
    ?x.dest(x)     ?return()        wh / yes-no questions
    { ?a() | ?b() }                 alternative question
    paris  -paris  yes  no          short and polar answers
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional, Sequence, Union

from ibisdm.exceptions import DomainViolationError, IrrelevantAnswerError

if TYPE_CHECKING:
    from ibisdm.semantics.domain import Domain


class Polarity(str, Enum):
    AFFIRMATIVE = "pos"
    NEGATED = "neg"

    def flipped(self) -> "Polarity":
        return Polarity.NEGATED if self is Polarity.AFFIRMATIVE else Polarity.AFFIRMATIVE


# ─────────────────────────────────────────────────────────────────────────────
# Proposition
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Proposition:
    pred: str
    args: tuple[str, ...] = ()
    polarity: Polarity = Polarity.AFFIRMATIVE

    @classmethod
    def create(
        cls,
        domain: "Domain",
        pred: str,
        args: Sequence[str] = (),
        polarity: Polarity = Polarity.AFFIRMATIVE,
    ) -> "Proposition":
        args = tuple(args)
        domain.check_predication(pred, args)
        return cls(pred=pred, args=args, polarity=polarity)

    @property
    def is_affirmative(self) -> bool:
        return self.polarity is Polarity.AFFIRMATIVE

    def negated(self) -> "Proposition":
        return replace(self, polarity=self.polarity.flipped())

    def __str__(self) -> str:
        sign = "" if self.is_affirmative else "-"
        return f"{sign}{self.pred}({', '.join(self.args)})"


# ─────────────────────────────────────────────────────────────────────────────
# Answers
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ShortAnswer:
    """A bare individual, e.g. "paris" or "-paris"."""
    individual: str
    polarity: Polarity = Polarity.AFFIRMATIVE

    @classmethod
    def create(
        cls, domain: "Domain", individual: str, polarity: Polarity = Polarity.AFFIRMATIVE
    ) -> "ShortAnswer":
        if not domain.is_individual(individual):
            raise DomainViolationError(f"Unknown individual '{individual}'")
        return cls(individual=individual, polarity=polarity)

    def __str__(self) -> str:
        return ("" if self.polarity is Polarity.AFFIRMATIVE else "-") + self.individual


@dataclass(frozen=True)
class PropositionAnswer:
    prop: Proposition

    def __str__(self) -> str:
        return str(self.prop)


@dataclass(frozen=True)
class YesNoAnswer:
    value: bool

    def __str__(self) -> str:
        return "yes" if self.value else "no"


Answer = Union[ShortAnswer, PropositionAnswer, YesNoAnswer]


# ─────────────────────────────────────────────────────────────────────────────
# Questions
# ─────────────────────────────────────────────────────────────────────────────

class Question:
    """
    Common behaviour of the three question kinds.

    resolve(answer)      the proposition an answer contributes, or
                         IrrelevantAnswerError
    accepts(answer)      whether resolve() would succeed
    resolved_by(prop)    whether an already-known proposition settles
                         the question
    """

    __slots__ = ()

    def resolve(self, answer: Answer) -> Proposition:
        raise NotImplementedError

    def resolved_by(self, prop: Proposition) -> bool:
        raise NotImplementedError

    def accepts(self, answer: Answer) -> bool:
        try:
            self.resolve(answer)
        except IrrelevantAnswerError:
            return False
        return True

    def best_answer(self, props: Iterable[Proposition]) -> Optional[Proposition]:
        """First proposition in `props` that settles this question."""
        for prop in props:
            if self.resolved_by(prop):
                return prop
        return None


@dataclass(frozen=True)
class YesNoQuestion(Question):
    prop: Proposition

    def resolve(self, answer: Answer) -> Proposition:
        if isinstance(answer, YesNoAnswer):
            return self.prop if answer.value else self.prop.negated()
        if isinstance(answer, PropositionAnswer) and self.resolved_by(answer.prop):
            return answer.prop
        raise IrrelevantAnswerError(answer, self)

    def resolved_by(self, prop: Proposition) -> bool:
        return prop == self.prop or prop == self.prop.negated()

    def __str__(self) -> str:
        return f"?{self.prop}"


@dataclass(frozen=True)
class WhQuestion(Question):
    pred: str
    sort: str
    domain: "Domain" = field(compare=False, repr=False)

    @classmethod
    def create(
        cls, domain: "Domain", pred: str, sort: Optional[str] = None
    ) -> "WhQuestion":
        declared = domain.sort_of_pred(pred)
        if declared is None:
            raise DomainViolationError(
                f"Wh-questions need a one-place predicate; '{pred}' is not one"
            )
        if sort is not None and sort != declared:
            raise DomainViolationError(
                f"Predicate '{pred}' ranges over '{declared}', not '{sort}'"
            )
        return cls(pred=pred, sort=declared, domain=domain)

    def resolve(self, answer: Answer) -> Proposition:
        if isinstance(answer, ShortAnswer):
            if self.domain.sort_of(answer.individual) == self.sort:
                return Proposition(self.pred, (answer.individual,), answer.polarity)
        elif isinstance(answer, PropositionAnswer):
            prop = answer.prop
            if prop.pred == self.pred and self.domain.admits(prop.pred, prop.args):
                return prop
        raise IrrelevantAnswerError(answer, self)

    def resolved_by(self, prop: Proposition) -> bool:
        return prop.pred == self.pred and prop.is_affirmative

    def __str__(self) -> str:
        return f"?x.{self.pred}(x)"


@dataclass(frozen=True)
class AltQuestion(Question):
    alternatives: frozenset[Proposition]

    @classmethod
    def create(cls, alternatives: Iterable[Proposition]) -> "AltQuestion":
        alts = frozenset(alternatives)
        if not alts:
            raise DomainViolationError("An alternative question needs at least one alternative")
        return cls(alternatives=alts)

    def resolve(self, answer: Answer) -> Proposition:
        if isinstance(answer, PropositionAnswer) and answer.prop in self.alternatives:
            return answer.prop
        raise IrrelevantAnswerError(answer, self)

    def resolved_by(self, prop: Proposition) -> bool:
        return prop.is_affirmative and prop in self.alternatives

    def __str__(self) -> str:
        return "{ " + " | ".join(sorted(f"?{p}" for p in self.alternatives)) + " }"


__all__ = [
    "Polarity",
    "Proposition",
    "ShortAnswer",
    "PropositionAnswer",
    "YesNoAnswer",
    "Answer",
    "Question",
    "YesNoQuestion",
    "WhQuestion",
    "AltQuestion",
]
