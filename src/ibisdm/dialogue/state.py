"""
dialogue/state.py - Information State

One InformationState exists per dialogue. It is split the IBIS way:

  private   agenda   Stack[PlanConstructor]   goals not yet started
            plan     Stack[PlanConstructor]   the goal being worked on
            bel      TSet[Proposition]        what the system believes

  shared    committed  Stack[Proposition]     mutual commitments
            qud        StackSet[Question]     questions under discussion
            pending    Stack[Question]        asked, awaiting an answer
            latest_moves / latest_speaker

The containers carry validators bound to the domain, so an ill-typed or
domain-invalid object can never be stored. The engine only ever mutates a
copy(), so a failed update leaves the caller's state untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from ibisdm.containers import Stack, StackSet, TSet
from ibisdm.dialogue.moves import (
    Consult,
    Findout,
    If,
    Move,
    PlanConstructor,
    Raise,
    Respond,
    Speaker,
)
from ibisdm.semantics.domain import Domain
from ibisdm.semantics.types import Proposition, Question

_PLAN_TYPES = (Findout, Consult, Raise, Respond, If)


def proposition_validator(domain: Domain) -> Callable[[object], bool]:
    def _valid(obj: object) -> bool:
        return isinstance(obj, Proposition) and domain.admits(obj.pred, obj.args)
    return _valid


def _is_question(obj: object) -> bool:
    return isinstance(obj, Question)


def _is_plan_step(obj: object) -> bool:
    return isinstance(obj, _PLAN_TYPES)


@dataclass
class PrivateState:
    agenda: Stack[PlanConstructor]
    plan: Stack[PlanConstructor]
    bel: TSet[Proposition]


@dataclass
class SharedState:
    committed: Stack[Proposition]
    qud: StackSet[Question]
    pending: Stack[Question]
    latest_moves: tuple[Move, ...] = field(default=())
    latest_speaker: Optional[Speaker] = None


class InformationState:
    def __init__(self, domain: Domain, private: PrivateState, shared: SharedState) -> None:
        self.domain = domain
        self.private = private
        self.shared = shared

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def empty(
        cls,
        domain: Domain,
        plan: Iterable[PlanConstructor] = (),
        agenda: Iterable[PlanConstructor] = (),
    ) -> "InformationState":
        """New state. `plan` and `agenda` are given first-to-do first."""
        valid_prop = proposition_validator(domain)
        return cls(
            domain=domain,
            private=PrivateState(
                agenda=Stack(agenda, validator=_is_plan_step),
                plan=Stack(plan, validator=_is_plan_step),
                bel=TSet(validator=valid_prop),
            ),
            shared=SharedState(
                committed=Stack(validator=valid_prop),
                qud=StackSet(validator=_is_question),
                pending=Stack(validator=_is_question),
            ),
        )

    def copy(self) -> "InformationState":
        """Independent copy. Elements are immutable, so copying the containers suffices."""
        return InformationState(
            domain=self.domain,
            private=PrivateState(
                agenda=self.private.agenda.copy(),
                plan=self.private.plan.copy(),
                bel=self.private.bel.copy(),
            ),
            shared=SharedState(
                committed=self.shared.committed.copy(),
                qud=self.shared.qud.copy(),
                pending=self.shared.pending.copy(),
                latest_moves=self.shared.latest_moves,
                latest_speaker=self.shared.latest_speaker,
            ),
        )

    # ── Knowledge ─────────────────────────────────────────────────────────────

    def knowledge(self) -> list[Proposition]:
        """committed (most recent first) followed by private beliefs."""
        props = list(self.shared.committed)
        props.extend(p for p in sorted(self.private.bel, key=str) if p not in props)
        return props

    def knows(self, prop: Proposition) -> bool:
        return prop in self.shared.committed or prop in self.private.bel

    def is_resolved(self, question: Question) -> bool:
        return question.best_answer(self.knowledge()) is not None

    def commit(self, prop: Proposition) -> None:
        """Add `prop` to the shared commitments, replacing its negation if present."""
        committed = self.shared.committed
        if prop in committed:
            return
        opposite = prop.negated()
        if opposite in committed:
            kept = [p for p in committed if p != opposite]
            committed.clear()
            for p in reversed(kept):
                committed.push(p)
        committed.push(prop)

    # ── Status ────────────────────────────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return (
            self.private.plan.is_empty()
            and self.private.agenda.is_empty()
            and self.shared.pending.is_empty()
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "agenda": [str(s) for s in self.private.agenda],
            "plan": [str(s) for s in self.private.plan],
            "bel": sorted(str(p) for p in self.private.bel),
            "committed": [str(p) for p in self.shared.committed],
            "qud": [str(q) for q in self.shared.qud],
            "pending": [str(q) for q in self.shared.pending],
            "latest_speaker": self.shared.latest_speaker.value if self.shared.latest_speaker else None,
            "latest_moves": [str(m) for m in self.shared.latest_moves],
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InformationState):
            return NotImplemented
        return self.snapshot() == other.snapshot()

    def __str__(self) -> str:
        p, s = self.private, self.shared
        speaker = s.latest_speaker.value if s.latest_speaker else "-"
        moves = ", ".join(str(m) for m in s.latest_moves)
        return "\n".join([
            "private:",
            f"  agenda:    {p.agenda}",
            f"  plan:      {p.plan}",
            f"  bel:       {p.bel}",
            "shared:",
            f"  committed: {s.committed}",
            f"  qud:       {s.qud}",
            f"  pending:   {s.pending}",
            f"  latest:    {speaker}: [{moves}]",
        ])

    def __repr__(self) -> str:
        return (
            f"<InformationState plan={len(self.private.plan)} "
            f"agenda={len(self.private.agenda)} qud={len(self.shared.qud)} "
            f"committed={len(self.shared.committed)}>"
        )
