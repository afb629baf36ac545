"""
dialogue/rules.py - Update Rules

Integration is driven by an explicit, ordered table of update rules. Each
rule is a (name, precondition, effect) triple:

    precondition(state, move) -> bool      may this rule integrate `move`?
    effect(state, move) -> list[Move]      apply it; return reply moves

Effects mutate the state they are given. The engine always hands them a
private copy and only keeps it when the effect returns normally, so a rule
that raises leaves nothing behind.

The default table lives in the module-level `integration_rules`:

    integrateGreet  >  integrateAsk  >  integrateAnswer  >  accommodate  >  integrateQuit

Usage:
    table = integration_rules.ordered(["integrateAsk", "integrateGreet", ...])
    for rule in table:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from ibisdm.dialogue.moves import (
    Ask,
    AnswerMove,
    Greet,
    Move,
    Quit,
    Respond,
)
from ibisdm.dialogue.state import InformationState
from ibisdm.exceptions import IrrelevantAnswerError, RuleConfigError
from ibisdm.observability.logger import get_logger
from ibisdm.semantics.types import Answer, Proposition, Question

log = get_logger(__name__)

Precondition = Callable[[InformationState, Move], bool]
Effect = Callable[[InformationState, Move], list[Move]]


@dataclass(frozen=True)
class UpdateRule:
    name: str
    precondition: Precondition
    effect: Effect
    description: str = ""

    def __repr__(self) -> str:
        return f"<UpdateRule {self.name}>"


class RuleTable:
    """Ordered registry of update rules. Iteration follows priority order."""

    def __init__(self, rules: Sequence[UpdateRule] = ()) -> None:
        self._rules: dict[str, UpdateRule] = {}
        for rule in rules:
            self.add(rule)

    def register(self, name: str, precondition: Precondition, description: str = "") -> Callable:
        """
        Decorator registering an effect function as a rule, appended at the
        lowest priority.

        Example:
            @table.register("integrateGreet", precondition=lambda s, m: isinstance(m, Greet))
            def integrate_greet(state, move):
                return [Greet()]
        """
        def decorator(fn: Effect) -> Effect:
            self.add(UpdateRule(name, precondition, fn, description or (fn.__doc__ or "").strip()))
            return fn
        return decorator

    def add(self, rule: UpdateRule) -> None:
        if rule.name in self._rules:
            raise RuleConfigError(f"Rule '{rule.name}' is already registered")
        self._rules[rule.name] = rule
        log.debug("rule.registered", rule=rule.name, priority=len(self._rules))

    def get(self, name: str) -> Optional[UpdateRule]:
        return self._rules.get(name)

    def names(self) -> list[str]:
        return list(self._rules)

    def ordered(self, priority: Optional[Sequence[str]] = None) -> "RuleTable":
        """
        Return a new table with rules in `priority` order.

        `priority` must name every registered rule exactly once.
        """
        if priority is None:
            return RuleTable(list(self._rules.values()))
        unknown = [n for n in priority if n not in self._rules]
        if unknown:
            raise RuleConfigError(f"Unknown rule(s) in priority: {unknown}")
        if len(set(priority)) != len(priority):
            raise RuleConfigError(f"Duplicate rule(s) in priority: {list(priority)}")
        missing = [n for n in self._rules if n not in priority]
        if missing:
            raise RuleConfigError(f"Rule(s) missing from priority: {missing}")
        return RuleTable([self._rules[n] for n in priority])

    def __iter__(self) -> Iterator[UpdateRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __repr__(self) -> str:
        return f"<RuleTable rules={self.names()}>"


# ─────────────────────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────────────────────

def accommodation_target(state: InformationState, answer: Answer) -> Optional[Question]:
    """
    The question an answer can be accommodated to when the top of QUD does
    not accept it. Candidates, in order: the question awaiting an answer,
    the question targeted by the current plan step, then questions deeper
    in QUD.
    """
    candidates: list[Question] = []
    if state.shared.pending:
        candidates.append(state.shared.pending.top())
    if state.private.plan:
        candidates.append(state.private.plan.top().question)
    candidates.extend(list(state.shared.qud)[1:])
    for question in candidates:
        if question.accepts(answer):
            return question
    return None


def _top_accepts(state: InformationState, answer: Answer) -> bool:
    qud = state.shared.qud
    return bool(qud) and qud.top().accepts(answer)


def _settle(state: InformationState, question: Question, prop: Proposition) -> None:
    state.commit(prop)
    if question.resolved_by(prop):
        state.shared.qud.remove(question)
        # a settled question no longer needs the system to answer it
        state.private.agenda.remove(Respond(question))
        state.private.plan.remove(Respond(question))
    pending = state.shared.pending
    if pending and pending.top() == question:
        pending.pop()


# ─────────────────────────────────────────────────────────────────────────────
# Default integration rules
# ─────────────────────────────────────────────────────────────────────────────

integration_rules = RuleTable()


@integration_rules.register(
    "integrateGreet",
    precondition=lambda state, move: isinstance(move, Greet),
)
def integrate_greet(state: InformationState, move: Greet) -> list[Move]:
    """Return the greeting."""
    return [Greet()]


@integration_rules.register(
    "integrateAsk",
    precondition=lambda state, move: isinstance(move, Ask),
)
def integrate_ask(state: InformationState, move: Ask) -> list[Move]:
    """Put the asked question under discussion and adopt the goal of answering it."""
    state.shared.qud.push(move.question)
    goal = Respond(move.question)
    if goal not in state.private.agenda and goal not in state.private.plan:
        state.private.agenda.push(goal)
    return []


def _answer_goes_to_top(state: InformationState, move: Move) -> bool:
    if not isinstance(move, AnswerMove):
        return False
    return _top_accepts(state, move.answer) or accommodation_target(state, move.answer) is None


@integration_rules.register("integrateAnswer", precondition=_answer_goes_to_top)
def integrate_answer(state: InformationState, move: AnswerMove) -> list[Move]:
    """Resolve the answer against the question on top of QUD."""
    qud = state.shared.qud
    if not qud:
        raise IrrelevantAnswerError(move.answer)
    question = qud.top()
    _settle(state, question, question.resolve(move.answer))
    return []


def _answer_needs_accommodation(state: InformationState, move: Move) -> bool:
    if not isinstance(move, AnswerMove):
        return False
    return not _top_accepts(state, move.answer) and accommodation_target(state, move.answer) is not None


@integration_rules.register("accommodate", precondition=_answer_needs_accommodation)
def accommodate(state: InformationState, move: AnswerMove) -> list[Move]:
    """Raise the question the answer addresses onto QUD, then resolve it there."""
    question = accommodation_target(state, move.answer)
    state.shared.qud.push(question)
    _settle(state, question, question.resolve(move.answer))
    return []


@integration_rules.register(
    "integrateQuit",
    precondition=lambda state, move: isinstance(move, Quit),
)
def integrate_quit(state: InformationState, move: Quit) -> list[Move]:
    """Drop every goal; the dialogue becomes terminal."""
    state.private.agenda.clear()
    state.private.plan.clear()
    state.shared.pending.clear()
    return []


DEFAULT_PRIORITY: tuple[str, ...] = tuple(integration_rules.names())
