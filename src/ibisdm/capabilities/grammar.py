"""
capabilities/grammar.py - Grammar Capability

Maps between text and formal moves. The engine never sees text; a
DialogueSession calls interpret() on the way in and generate()/realize() on
the way out.

    interpret(utterance, state) -> list[Move]   alternative readings, best
                                                guess first; ParseFailureError
                                                when there is none
    generate(move) -> str                       deterministic, total

FormalGrammar reads the formal notation directly ("?x.dest(x)", "paris",
"-paris", "yes", "dest(paris)", "quit") and also accepts a phrase lexicon
mapping fixed surface strings to one or more readings. Generation looks the
move up in a form table and falls back to the move's formal notation.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, Optional, Union

from ibisdm.dialogue.moves import ICM, Ask, AnswerMove, Greet, IcmKind, Move, Quit
from ibisdm.exceptions import DomainViolationError, ParseFailureError
from ibisdm.notation import parse_answer, parse_move, parse_question
from ibisdm.observability.logger import get_logger
from ibisdm.semantics.domain import Domain

if TYPE_CHECKING:
    from ibisdm.dialogue.state import InformationState

log = get_logger(__name__)


class Grammar(ABC):
    @abstractmethod
    def interpret(self, utterance: str, state: Optional["InformationState"] = None) -> list[Move]:
        """Readings of `utterance`. Raises ParseFailureError when there are none."""

    @abstractmethod
    def generate(self, move: Move) -> str:
        """Surface text for a single move."""

    def realize(self, moves: Iterable[Move]) -> str:
        """Join the phrases for several moves into one utterance."""
        return join_phrases(self.generate(m) for m in moves)


def join_phrases(phrases: Iterable[str]) -> str:
    out: list[str] = []
    for phrase in phrases:
        phrase = phrase.strip()
        if not phrase:
            continue
        if phrase[-1] not in ".?!":
            phrase += "."
        out.append(phrase)
    return " ".join(out)


_DEFAULT_FORMS = {
    "Greet()": "Hello",
    "Quit()": "Goodbye",
    "icm:per*neg": "Sorry, I didn't catch that",
    "icm:sem*neg": "I don't understand",
    "icm:acc*neg": "Sorry, I can't answer that",
}

_GREETINGS = {"hello", "hi", "hey"}
_QUITS = {"quit", "exit", "bye", "goodbye"}

_WS = re.compile(r"\s+")


def _normalize(text: str) -> str:
    return _WS.sub(" ", text.strip().lower()).rstrip(".!")


class FormalGrammar(Grammar):
    def __init__(self, domain: Domain) -> None:
        self.domain = domain
        self._forms: dict[str, str] = dict(_DEFAULT_FORMS)
        self._phrases: dict[str, list[Move]] = {}

    # ── Lexicon ───────────────────────────────────────────────────────────────

    def add_form(self, move: Union[Move, str], text: str) -> None:
        """Register the surface text for a move, keyed by its formal notation."""
        self._forms[str(move)] = text

    def add_phrase(self, text: str, *moves: Union[Move, str]) -> None:
        """Map a fixed phrase to one or more readings (formal strings are parsed)."""
        readings = [parse_move(m, self.domain) if isinstance(m, str) else m for m in moves]
        if not readings:
            raise ValueError("add_phrase needs at least one reading")
        self._phrases[_normalize(text)] = readings

    @property
    def forms(self) -> dict[str, str]:
        return dict(self._forms)

    # ── Interpretation ────────────────────────────────────────────────────────

    def interpret(self, utterance: str, state: Optional["InformationState"] = None) -> list[Move]:
        text = _normalize(utterance)
        if not text:
            raise ParseFailureError(utterance, "Empty utterance")

        if text in self._phrases:
            return list(self._phrases[text])
        if text in _GREETINGS:
            return [Greet()]
        if text in _QUITS:
            return [Quit()]

        raw = utterance.strip().rstrip(".!")
        try:
            if raw.startswith("?") or raw.startswith("{"):
                return [Ask(parse_question(raw, self.domain))]
            return [AnswerMove(parse_answer(raw, self.domain))]
        except DomainViolationError as exc:
            log.debug("grammar.no_reading", utterance=utterance, reason=str(exc))
            raise ParseFailureError(utterance, str(exc)) from exc

    # ── Generation ────────────────────────────────────────────────────────────

    def generate(self, move: Move) -> str:
        key = str(move)
        if key in self._forms:
            return self._forms[key]
        if isinstance(move, ICM):
            text = self._forms.get(move.key, key)
            if move.kind is IcmKind.SEM_NEG and move.content:
                return f"{text}: {move.content}"
            return text
        return key

    def __repr__(self) -> str:
        return f"<FormalGrammar forms={len(self._forms)} phrases={len(self._phrases)}>"
