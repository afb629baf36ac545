"""
observability/trace.py - Dialogue Trace

Tags every structured log line emitted while a dialogue is open with its
session_id and trace_id, and every line emitted inside a turn with the
turn number and turn_id, using structlog's contextvars integration.

Turn ids are "<trace_id>.<n>", so the log lines of one dialogue sort and
group by a plain string prefix.

Usage (dialogue session):
    trace = DialogueTrace.for_session(session_id)
    trace.open()

    with trace.turn() as turn_id:
        log.info("session.turn_start")
        # → {"event": "session.turn_start", "session_id": "dlg_1a2b...",
        #    "trace_id": "trc_1a2b3c4d", "turn": 1, "turn_id": "trc_1a2b3c4d.1"}

    trace.close()
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import structlog.contextvars as _scv

from ibisdm.observability.logger import bind_session, clear_session


@dataclass
class DialogueTrace:
    session_id: str
    trace_id: str
    turns: int = 0

    @classmethod
    def for_session(cls, session_id: str) -> "DialogueTrace":
        # "dlg_1a2b3c4d5e6f" → "trc_1a2b3c4d"
        suffix = session_id.split("_")[-1][:8] or uuid.uuid4().hex[:8]
        return cls(session_id=session_id, trace_id=f"trc_{suffix}")

    def open(self) -> None:
        bind_session(self.session_id)
        _scv.bind_contextvars(trace_id=self.trace_id)

    @contextmanager
    def turn(self) -> Iterator[str]:
        """Scope one turn. Turn numbers keep counting across the dialogue."""
        self.turns += 1
        turn_id = f"{self.trace_id}.{self.turns}"
        _scv.bind_contextvars(turn=self.turns, turn_id=turn_id)
        try:
            yield turn_id
        finally:
            _scv.unbind_contextvars("turn", "turn_id")

    def close(self) -> None:
        clear_session()

    def as_dict(self) -> dict:
        return {"session_id": self.session_id, "trace_id": self.trace_id, "turns": self.turns}
