"""
dialogue/moves.py - Dialogue Moves and Plan Constructors

Moves are what participants do in a turn (greet, ask, answer, give
feedback, quit). Plan constructors are the system's goals; a plan is a
Stack of them with the next goal on top.

All of these are plain frozen data. Their str() form is the canonical
formal notation, which the grammar's form table is keyed on:

    Greet()   Quit()   Ask('?x.dest(x)')   Answer(paris)   icm:sem*neg:'paris'
    Findout('?x.dest(x)')   Consult('?x.price(x)')   Raise('?return()')
    Respond('?x.price(x)')  If('?return()', [Findout('?x.day(x)')], [])
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ibisdm.semantics.types import Answer, Question, YesNoQuestion


class Speaker(str, Enum):
    USR = "usr"
    SYS = "sys"


class IcmKind(str, Enum):
    """Interactive Communication Management feedback, as level*polarity."""
    PER_NEG = "per*neg"     # utterance not perceived / not parsed
    SEM_NEG = "sem*neg"     # understood words, but not a relevant contribution
    ACC_NEG = "acc*neg"     # cannot accept / cannot answer the issue


# ─────────────────────────────────────────────────────────────────────────────
# Moves
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Greet:
    def __str__(self) -> str:
        return "Greet()"


@dataclass(frozen=True)
class Quit:
    def __str__(self) -> str:
        return "Quit()"


@dataclass(frozen=True)
class Ask:
    question: Question

    def __str__(self) -> str:
        return f"Ask('{self.question}')"


@dataclass(frozen=True)
class AnswerMove:
    answer: Answer

    def __str__(self) -> str:
        return f"Answer({self.answer})"


@dataclass(frozen=True)
class ICM:
    kind: IcmKind
    content: Optional[str] = None

    @property
    def key(self) -> str:
        """Form-table key without the content part."""
        return f"icm:{self.kind.value}"

    def __str__(self) -> str:
        if self.content is None:
            return self.key
        return f"{self.key}:'{self.content}'"


Move = Union[Greet, Quit, Ask, AnswerMove, ICM]


# ─────────────────────────────────────────────────────────────────────────────
# Plan constructors
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Findout:
    question: Question

    def __str__(self) -> str:
        return f"Findout('{self.question}')"


@dataclass(frozen=True)
class Consult:
    question: Question

    def __str__(self) -> str:
        return f"Consult('{self.question}')"


@dataclass(frozen=True)
class Raise:
    question: Question

    def __str__(self) -> str:
        return f"Raise('{self.question}')"


@dataclass(frozen=True)
class Respond:
    question: Question

    def __str__(self) -> str:
        return f"Respond('{self.question}')"


@dataclass(frozen=True)
class If:
    """Branch on whether `cond` is known to hold. Steps are listed first-to-do first."""
    cond: YesNoQuestion
    iftrue: tuple["PlanConstructor", ...] = ()
    iffalse: tuple["PlanConstructor", ...] = ()

    @property
    def question(self) -> YesNoQuestion:
        return self.cond

    def __str__(self) -> str:
        t = ", ".join(str(s) for s in self.iftrue)
        f = ", ".join(str(s) for s in self.iffalse)
        return f"If('{self.cond}', [{t}], [{f}])"


PlanConstructor = Union[Findout, Consult, Raise, Respond, If]


__all__ = [
    "Speaker",
    "IcmKind",
    "Greet",
    "Quit",
    "Ask",
    "AnswerMove",
    "ICM",
    "Move",
    "Findout",
    "Consult",
    "Raise",
    "Respond",
    "If",
    "PlanConstructor",
]
