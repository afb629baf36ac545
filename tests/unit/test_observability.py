"""
tests/unit/test_observability.py - Logging and Trace Context

Covers:
  - DialogueTrace derives its trace_id from the session id
  - open() / close() bind and clear session_id and trace_id
  - turn() numbers turns and unbinds turn_id on exit
  - bind_session() / clear_session() manage the session_id contextvar
  - setup_logging() writes JSON lines to the rotating log file

Run with: pytest tests/unit/test_observability.py -v
"""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from ibisdm.observability.logger import bind_session, clear_session, get_logger, setup_logging
from ibisdm.observability.trace import DialogueTrace


class TestDialogueTrace:
    def test_trace_id_from_session(self):
        trace = DialogueTrace.for_session("dlg_1a2b3c4d5e6f")
        assert trace.trace_id == "trc_1a2b3c4d"

    def test_random_trace_id_for_bare_prefix(self):
        trace = DialogueTrace.for_session("dlg_")
        assert trace.trace_id.startswith("trc_")
        assert len(trace.trace_id) == len("trc_") + 8

    def test_open_binds_session_and_trace(self):
        trace = DialogueTrace.for_session("dlg_abcdef012345")
        trace.open()
        bound = structlog.contextvars.get_contextvars()
        assert bound["session_id"] == "dlg_abcdef012345"
        assert bound["trace_id"] == "trc_abcdef01"
        trace.close()
        assert structlog.contextvars.get_contextvars() == {}

    def test_turn_scope_numbers_turns(self):
        trace = DialogueTrace.for_session("dlg_abcdef012345")
        trace.open()
        with trace.turn() as first:
            assert structlog.contextvars.get_contextvars()["turn"] == 1
        with trace.turn() as second:
            assert structlog.contextvars.get_contextvars()["turn_id"] == second
        assert (first, second) == ("trc_abcdef01.1", "trc_abcdef01.2")

        bound = structlog.contextvars.get_contextvars()
        assert "turn_id" not in bound
        assert bound["trace_id"] == "trc_abcdef01"
        assert trace.as_dict()["turns"] == 2
        trace.close()

    def test_turn_scope_unbinds_on_error(self):
        trace = DialogueTrace.for_session("dlg_abcdef012345")
        with pytest.raises(RuntimeError):
            with trace.turn():
                raise RuntimeError("boom")
        assert "turn" not in structlog.contextvars.get_contextvars()


class TestLogger:
    def test_session_binding(self):
        bind_session("dlg_000000000001")
        assert structlog.contextvars.get_contextvars()["session_id"] == "dlg_000000000001"
        clear_session()
        assert structlog.contextvars.get_contextvars() == {}

    def test_file_output_is_json(self, tmp_path):
        setup_logging(level="DEBUG", log_dir=tmp_path)
        get_logger("test").info("engine.turn_done", status="terminal")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = (tmp_path / "ibisdm.log").read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "engine.turn_done"
        assert record["status"] == "terminal"
        assert record["level"] == "info"
