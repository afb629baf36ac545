"""
dialogue/engine.py - Update Engine

The dialogue core. One call to DialogueEngine.step() is one system turn:

    result = engine.step(state, [AnswerMove(ShortAnswer("paris"))])
    new_state, moves, status = result

  1. Integrate  apply update rules, in priority order, until none fires
  2. Select     execute plan steps until one waits for the user or the
                plan and agenda run dry; an empty plan pulls the next goal
                from the agenda
  3. Generate   the collected moves are the turn's output

step() is pure: the caller's state is never touched, a new one is returned.
There is no I/O here; whoever drives the dialogue owns input, output and
timeouts.

Discourse errors (an irrelevant answer) are answered with an ICM move and
leave the state as it was. Structural errors (an empty QUD under a Respond
step, a validator rejecting a database result) propagate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Sequence

from ibisdm.capabilities.database import Database
from ibisdm.dialogue.moves import (
    ICM,
    Ask,
    AnswerMove,
    Consult,
    Findout,
    IcmKind,
    If,
    Move,
    PlanConstructor,
    Raise,
    Respond,
    Speaker,
)
from ibisdm.dialogue.rules import (
    RuleTable,
    accommodation_target,
    integration_rules,
)
from ibisdm.dialogue.state import InformationState
from ibisdm.exceptions import DiscourseError, IterationLimitError, PlanExecutionError
from ibisdm.observability.logger import get_logger
from ibisdm.semantics.domain import Domain
from ibisdm.semantics.types import PropositionAnswer, Question

if TYPE_CHECKING:
    from ibisdm.config.settings import EngineConfig

log = get_logger(__name__)


class TurnStatus(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class TurnResult:
    state: InformationState
    moves: tuple[Move, ...]
    status: TurnStatus
    fired: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status is TurnStatus.TERMINAL

    def __iter__(self) -> Iterator:
        # allows: new_state, moves, status = engine.step(...)
        return iter((self.state, self.moves, self.status))


# (moves emitted, wait for the user)
StepOutcome = tuple[list[Move], bool]


class DialogueEngine:
    def __init__(
        self,
        domain: Domain,
        database: Optional[Database] = None,
        rules: Optional[RuleTable] = None,
        priority: Optional[Sequence[str]] = None,
        max_rule_firings: int = 64,
        max_plan_steps: int = 32,
    ) -> None:
        self.domain = domain
        self.database = database
        self.rules = (rules or integration_rules).ordered(priority)
        self.max_rule_firings = max_rule_firings
        self.max_plan_steps = max_plan_steps

        self._executors: dict[type, Callable[[InformationState, PlanConstructor], StepOutcome]] = {
            Findout: self._exec_findout,
            Consult: self._exec_consult,
            Raise: self._exec_raise,
            Respond: self._exec_respond,
            If: self._exec_if,
        }

    @classmethod
    def from_config(
        cls,
        domain: Domain,
        config: "EngineConfig",
        database: Optional[Database] = None,
    ) -> "DialogueEngine":
        return cls(
            domain,
            database=database,
            priority=config.rule_priority,
            max_rule_firings=config.max_rule_firings,
            max_plan_steps=config.max_plan_steps,
        )

    def initial_state(
        self,
        plan: Sequence[PlanConstructor] = (),
        agenda: Sequence[PlanConstructor] = (),
    ) -> InformationState:
        return InformationState.empty(self.domain, plan=plan, agenda=agenda)

    # ─────────────────────────────────────────────────────────────────────────
    # Turn
    # ─────────────────────────────────────────────────────────────────────────

    def step(self, state: InformationState, incoming: Sequence[Move] = ()) -> TurnResult:
        t0 = time.monotonic()
        working = state.copy()
        if incoming:
            working.shared.latest_moves = tuple(incoming)
            working.shared.latest_speaker = Speaker.USR

        outgoing: list[Move] = []
        fired: list[str] = []

        working = self._integrate(working, list(incoming), outgoing, fired)
        working = self._select(working, outgoing)

        working.shared.latest_moves = tuple(outgoing)
        working.shared.latest_speaker = Speaker.SYS

        status = TurnStatus.TERMINAL if working.is_terminal else TurnStatus.AWAITING_INPUT
        log.info(
            "engine.turn_done",
            incoming=[str(m) for m in incoming],
            outgoing=[str(m) for m in outgoing],
            fired=fired,
            status=status.value,
            ms=round((time.monotonic() - t0) * 1000, 2),
        )
        return TurnResult(working, tuple(outgoing), status, tuple(fired))

    # ── Integrate ─────────────────────────────────────────────────────────────

    def _integrate(
        self,
        state: InformationState,
        incoming: list[Move],
        outgoing: list[Move],
        fired: list[str],
    ) -> InformationState:
        consumed = [False] * len(incoming)
        firings = 0

        while True:
            match = None
            for rule in self.rules:
                for i, move in enumerate(incoming):
                    if not consumed[i] and rule.precondition(state, move):
                        match = (rule, i, move)
                        break
                if match is not None:
                    break
            if match is None:
                break

            firings += 1
            if firings > self.max_rule_firings:
                raise IterationLimitError(
                    f"Integration did not settle within {self.max_rule_firings} rule firings"
                )

            rule, i, move = match
            consumed[i] = True
            candidate = state.copy()
            try:
                replies = rule.effect(candidate, move)
            except DiscourseError as exc:
                log.info("engine.rule_rejected", rule=rule.name, move=str(move), reason=str(exc))
                outgoing.append(ICM(IcmKind.SEM_NEG, _icm_content(move)))
                continue

            state = candidate
            outgoing.extend(replies)
            fired.append(rule.name)
            log.debug("engine.rule_fired", rule=rule.name, move=str(move))

        for i, move in enumerate(incoming):
            if not consumed[i]:
                log.warning("engine.move_ignored", move=str(move))
        return state

    # ── Select ────────────────────────────────────────────────────────────────

    def _select(self, state: InformationState, outgoing: list[Move]) -> InformationState:
        steps = 0
        while True:
            if state.private.plan.is_empty():
                if state.private.agenda.is_empty():
                    break
                state = self._load_goal(state)
                continue

            steps += 1
            if steps > self.max_plan_steps:
                raise IterationLimitError(
                    f"Plan execution did not suspend within {self.max_plan_steps} steps"
                )

            step = state.private.plan.top()
            candidate = state.copy()
            moves, wait = self._executors[type(step)](candidate, step)
            state = candidate
            outgoing.extend(moves)
            log.debug("engine.plan_step", step=str(step), moves=[str(m) for m in moves], wait=wait)
            if wait:
                break
        return state

    def _load_goal(self, state: InformationState) -> InformationState:
        candidate = state.copy()
        goal = candidate.private.agenda.pop()
        candidate.private.plan.push(goal)
        if isinstance(goal, Respond):
            subplan = self.domain.get_plan(goal.question)
            if subplan:
                for step in reversed(subplan):
                    candidate.private.plan.push(step)
        log.debug("engine.goal_loaded", goal=str(goal))
        return candidate

    # ── Plan step executors ───────────────────────────────────────────────────
    # Each receives a private copy of the state with `step` on top of the plan.

    def _ask(self, state: InformationState, question: Question) -> StepOutcome:
        pending = state.shared.pending
        if not pending or pending.top() != question:
            pending.push(question)
        return [Ask(question)], True

    def _exec_findout(self, state: InformationState, step: Findout) -> StepOutcome:
        if state.is_resolved(step.question):
            state.private.plan.pop()
            return [], False
        return self._ask(state, step.question)

    def _exec_consult(self, state: InformationState, step: Consult) -> StepOutcome:
        question = step.question
        if state.is_resolved(question):
            state.private.plan.pop()
            return [], False
        if self.database is not None:
            prop = self.database.answer(question, frozenset(state.knowledge()))
            if prop is not None and question.resolved_by(prop):
                state.private.bel.insert(prop)
                state.private.plan.pop()
                return [], False
            log.info("engine.consult_miss", question=str(question))
        return self._ask(state, question)

    def _exec_raise(self, state: InformationState, step: Raise) -> StepOutcome:
        state.shared.qud.push(step.question)
        state.private.plan.pop()
        return [], False

    def _exec_respond(self, state: InformationState, step: Respond) -> StepOutcome:
        question = step.question
        qud = state.shared.qud
        if qud.top() != question:
            if question not in qud:
                raise PlanExecutionError(
                    f"Respond('{question}') but the question is not under discussion"
                )
            qud.push(question)
        qud.pop()
        state.private.plan.pop()

        committed = list(state.shared.committed)
        fresh = [p for p in sorted(state.private.bel, key=str) if p not in committed]
        prop = question.best_answer(fresh + committed)
        if prop is None:
            return [ICM(IcmKind.ACC_NEG, str(question))], False
        state.commit(prop)
        return [AnswerMove(PropositionAnswer(prop))], False

    def _exec_if(self, state: InformationState, step: If) -> StepOutcome:
        cond = step.cond.prop
        if state.knows(cond):
            branch = step.iftrue
        elif state.knows(cond.negated()):
            branch = step.iffalse
        else:
            return self._ask(state, step.cond)
        plan = state.private.plan
        plan.pop()
        for s in reversed(branch):
            plan.push(s)
        return [], False

    # ─────────────────────────────────────────────────────────────────────────
    # Reading selection
    # ─────────────────────────────────────────────────────────────────────────

    def select_reading(self, state: InformationState, candidates: Sequence[Move]) -> Move:
        """
        Pick among alternative readings of one utterance: the first that fits
        the open issues (an answer some open question accepts, or a question
        already under discussion), else the first candidate.
        """
        qud = state.shared.qud
        for move in candidates:
            if isinstance(move, AnswerMove):
                if (qud and qud.top().accepts(move.answer)) or accommodation_target(state, move.answer):
                    return move
            elif isinstance(move, Ask) and move.question in qud:
                return move
        return candidates[0]

    def __repr__(self) -> str:
        return f"<DialogueEngine rules={self.rules.names()} database={self.database!r}>"


def _icm_content(move: Move) -> str:
    if isinstance(move, AnswerMove):
        return str(move.answer)
    return str(move)
