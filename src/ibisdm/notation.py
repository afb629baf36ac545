"""
notation.py - Formal Notation Parser

Reads the canonical text forms printed by the semantic objects, moves and
plan constructors back into objects checked against a domain. Used by the
formal grammar (user input) and the domain-file loader (plans, forms,
phrases).

Malformed text raises ParseFailureError. Well-formed text that the domain
does not license raises DomainViolationError.
"""

from __future__ import annotations

import re

from ibisdm.dialogue.moves import (
    ICM,
    Ask,
    AnswerMove,
    Consult,
    Findout,
    Greet,
    IcmKind,
    Move,
    PlanConstructor,
    Quit,
    Raise,
    Respond,
)
from ibisdm.exceptions import ParseFailureError
from ibisdm.semantics.domain import Domain
from ibisdm.semantics.types import (
    AltQuestion,
    Answer,
    Polarity,
    Proposition,
    PropositionAnswer,
    Question,
    ShortAnswer,
    WhQuestion,
    YesNoAnswer,
    YesNoQuestion,
)

_NAME = r"[A-Za-z][A-Za-z0-9_\-+:]*"

_PROP_RE = re.compile(rf"^(-)?({_NAME})\(\s*([^()]*?)\s*\)$")
_WH_RE = re.compile(rf"^\?\s*x\s*\.\s*({_NAME})\(\s*x\s*\)$")
_ALT_RE = re.compile(r"^\{(.*)\}$")
_SHORT_RE = re.compile(rf"^(-)?({_NAME})$")
_CALL_RE = re.compile(r"^([A-Za-z]+)\((.*)\)$", re.DOTALL)
_ICM_RE = re.compile(r"^icm:([a-z]+\*[a-z]+)(?::(.*))?$")


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1].strip()
    return text


# ─────────────────────────────────────────────────────────────────────────────
# Semantic objects
# ─────────────────────────────────────────────────────────────────────────────

def parse_proposition(text: str, domain: Domain) -> Proposition:
    m = _PROP_RE.match(_unquote(text))
    if m is None:
        raise ParseFailureError(text, f"Not a proposition: {text!r}")
    negated, pred, raw_args = m.groups()
    args = [a.strip() for a in raw_args.split(",")] if raw_args else []
    polarity = Polarity.NEGATED if negated else Polarity.AFFIRMATIVE
    return Proposition.create(domain, pred, args, polarity)


def parse_question(text: str, domain: Domain) -> Question:
    body = _unquote(text)

    m = _WH_RE.match(body)
    if m is not None:
        return WhQuestion.create(domain, m.group(1))

    m = _ALT_RE.match(body)
    if m is not None:
        alternatives = []
        for part in m.group(1).split("|"):
            q = parse_question(part, domain)
            if not isinstance(q, YesNoQuestion):
                raise ParseFailureError(text, f"Alternatives must be yes/no questions: {part!r}")
            alternatives.append(q.prop)
        return AltQuestion.create(alternatives)

    if body.startswith("?"):
        return YesNoQuestion(parse_proposition(body[1:], domain))

    raise ParseFailureError(text, f"Not a question: {text!r}")


def parse_answer(text: str, domain: Domain) -> Answer:
    body = _unquote(text)
    lowered = body.lower()
    if lowered == "yes":
        return YesNoAnswer(True)
    if lowered == "no":
        return YesNoAnswer(False)
    if _PROP_RE.match(body):
        return PropositionAnswer(parse_proposition(body, domain))
    m = _SHORT_RE.match(body)
    if m is not None:
        polarity = Polarity.NEGATED if m.group(1) else Polarity.AFFIRMATIVE
        return ShortAnswer.create(domain, m.group(2), polarity)
    raise ParseFailureError(text, f"Not an answer: {text!r}")


# ─────────────────────────────────────────────────────────────────────────────
# Moves and plan steps
# ─────────────────────────────────────────────────────────────────────────────

def parse_move(text: str, domain: Domain) -> Move:
    body = text.strip()

    m = _ICM_RE.match(body)
    if m is not None:
        try:
            kind = IcmKind(m.group(1))
        except ValueError:
            raise ParseFailureError(text, f"Unknown ICM kind: {m.group(1)!r}") from None
        content = _unquote(m.group(2)) if m.group(2) else None
        return ICM(kind, content)

    m = _CALL_RE.match(body)
    if m is None:
        raise ParseFailureError(text, f"Not a move: {text!r}")
    name, arg = m.group(1), m.group(2).strip()

    if name == "Greet" and not arg:
        return Greet()
    if name == "Quit" and not arg:
        return Quit()
    if name == "Ask":
        return Ask(parse_question(arg, domain))
    if name == "Answer":
        return AnswerMove(parse_answer(arg, domain))
    raise ParseFailureError(text, f"Unknown move: {name!r}")


_STEP_TYPES = {
    "Findout": Findout,
    "Consult": Consult,
    "ConsultDB": Consult,
    "Raise": Raise,
    "Respond": Respond,
}


def parse_plan_step(text: str, domain: Domain) -> PlanConstructor:
    """Parse a single-question plan step such as Findout('?x.dest(x)')."""
    m = _CALL_RE.match(text.strip())
    if m is None or m.group(1) not in _STEP_TYPES:
        raise ParseFailureError(text, f"Not a plan step: {text!r}")
    return _STEP_TYPES[m.group(1)](parse_question(m.group(2), domain))


__all__ = [
    "parse_proposition",
    "parse_question",
    "parse_answer",
    "parse_move",
    "parse_plan_step",
]
