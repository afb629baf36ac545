"""
dialogue/session.py - Dialogue Session

One DialogueSession exists per conversation. It owns that conversation's
InformationState exclusively and wraps the pure engine with the text side:
interpret the user's utterance, pick a reading, step the engine, realize the
system's moves as text.

Independent sessions can share one engine, domain, grammar and database.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from ibisdm.capabilities.grammar import Grammar
from ibisdm.dialogue.engine import DialogueEngine, TurnResult, TurnStatus
from ibisdm.dialogue.moves import ICM, Greet, IcmKind, Move, PlanConstructor, Speaker
from ibisdm.dialogue.state import InformationState
from ibisdm.exceptions import ParseFailureError
from ibisdm.observability.logger import get_logger
from ibisdm.observability.trace import DialogueTrace

log = get_logger(__name__)


@dataclass(frozen=True)
class SystemTurn:
    text: str
    moves: tuple[Move, ...]
    status: TurnStatus
    fired: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status is TurnStatus.TERMINAL


class DialogueSession:
    """A single two-party dialogue driven turn by turn."""

    def __init__(
        self,
        session_id: str,
        engine: DialogueEngine,
        grammar: Grammar,
        state: Optional[InformationState] = None,
    ):
        self.id = session_id
        self.engine = engine
        self.grammar = grammar
        self.created_at = time.time()
        self._state = state if state is not None else engine.initial_state()
        self._closed = False
        self._trace = DialogueTrace.for_session(session_id)

        self.turn_count: int = 0
        self.parse_failures: int = 0
        self.transcript: list[tuple[Speaker, str]] = []

        log.debug("session.created", session_id=session_id)

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        engine: DialogueEngine,
        grammar: Grammar,
        plan: Sequence[PlanConstructor] = (),
        agenda: Sequence[PlanConstructor] = (),
    ) -> "DialogueSession":
        return cls(
            session_id=f"dlg_{uuid.uuid4().hex[:12]}",
            engine=engine,
            grammar=grammar,
            state=engine.initial_state(plan=plan, agenda=agenda),
        )

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def state(self) -> InformationState:
        return self._state

    @property
    def status(self) -> TurnStatus:
        if self._closed or self._state.is_terminal:
            return TurnStatus.TERMINAL
        return TurnStatus.AWAITING_INPUT

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ── Turns ─────────────────────────────────────────────────────────────────

    def start(self, greet: bool = False) -> SystemTurn:
        """Opening system turn: run the initial plan without any user input."""
        self._trace.open()
        turn = self._run([])
        if greet and not self._closed:
            moves = (Greet(),) + turn.moves
            turn = SystemTurn(self.grammar.realize(moves), moves, turn.status, turn.fired)
            self.transcript[-1] = (Speaker.SYS, turn.text)
        return turn

    def respond(self, utterance: str) -> SystemTurn:
        """Handle one user utterance and return the system's reply."""
        if self._closed:
            log.warning("session.respond_after_close", session_id=self.id)
            return SystemTurn("", (), TurnStatus.TERMINAL)

        self.transcript.append((Speaker.USR, utterance))
        try:
            readings = self.grammar.interpret(utterance, self._state)
        except ParseFailureError as exc:
            self.parse_failures += 1
            log.info("session.parse_failure", session_id=self.id, reason=str(exc))
            moves = (ICM(IcmKind.PER_NEG),)
            text = self.grammar.realize(moves)
            self.transcript.append((Speaker.SYS, text))
            return SystemTurn(text, moves, self.status)

        move = self.engine.select_reading(self._state, readings)
        if len(readings) > 1:
            log.debug("session.reading_selected", move=str(move), candidates=len(readings))
        return self._run([move], record_input=False)

    def submit(self, moves: Sequence[Move]) -> SystemTurn:
        """Step the dialogue with formal moves, bypassing interpretation."""
        return self._run(list(moves))

    def close(self) -> None:
        """Abort the dialogue. Further turns are ignored."""
        self._closed = True
        log.info("session.closed", session_id=self.id, turns=self.turn_count)
        self._trace.close()

    def _run(self, moves: list[Move], record_input: bool = True) -> SystemTurn:
        if self._closed:
            return SystemTurn("", (), TurnStatus.TERMINAL)

        with self._trace.turn():
            t0 = time.monotonic()
            log.info("session.turn_start", session_id=self.id)
            if record_input and moves:
                self.transcript.append((Speaker.USR, " ".join(str(m) for m in moves)))
            result: TurnResult = self.engine.step(self._state, moves)
            self._state = result.state
            self.turn_count += 1
            text = self.grammar.realize(result.moves)
            self.transcript.append((Speaker.SYS, text))
            log.info(
                "session.turn_done",
                session_id=self.id,
                status=result.status.value,
                ms=round((time.monotonic() - t0) * 1000, 2),
            )
            return SystemTurn(text, result.moves, result.status, result.fired)

    # ── Summary ───────────────────────────────────────────────────────────────

    def status_summary(self) -> dict:
        return {
            "session_id": self.id,
            "trace_id": self._trace.trace_id,
            "turns": self.turn_count,
            "parse_failures": self.parse_failures,
            "status": self.status.value,
            "closed": self._closed,
            "plan": [str(s) for s in self._state.private.plan],
            "qud": [str(q) for q in self._state.shared.qud],
            "committed": len(self._state.shared.committed),
            "uptime_seconds": round(time.time() - self.created_at, 1),
        }

    def __repr__(self) -> str:
        return f"<DialogueSession id={self.id} turns={self.turn_count} status={self.status.value}>"
