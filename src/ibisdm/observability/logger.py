"""
observability/logger.py - Structured Logger

Sets up structlog with:
  - JSON output to a rotating log file
  - Optional console output, human-readable (dev) or JSON (prod)
  - Consistent fields on every line: timestamp, level, event, logger,
    plus whatever dialogue context is bound (session_id, trace_id, turn_id)

Usage:
    from ibisdm.observability.logger import get_logger, setup_logging

    setup_logging(level="DEBUG", log_dir="./data/logs")   # once at startup
    log = get_logger(__name__)
    log.info("engine.turn_done", status="awaiting_input", moves=["Ask('?x.dest(x)')"])
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "./data/logs",
    json_format: bool = True,
    console_output: bool = False,
    max_bytes: int = 10 * 1024 * 1024,   # 10 MB
    backup_count: int = 5,
) -> None:
    """
    Configure structlog and stdlib logging. Call once at application startup.

    Args:
        level:          DEBUG | INFO | WARNING | ERROR | CRITICAL
        log_dir:        Directory for the rotating log file.
        json_format:    Console emits JSON when True, coloured text otherwise.
        console_output: Whether to log to stderr at all. Off by default so
                        log lines do not interleave with the dialogue.
        max_bytes:      Max size of the log file before rotation.
        backup_count:   Number of rotated files to keep.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    # ── Shared structlog processors ───────────────────────────────────────────
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    # ── File handler (always JSON) ────────────────────────────────────────────
    handlers: list[logging.Handler] = []

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_dir / "ibisdm.log",
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)
    handlers.append(file_handler)

    # ── Console handler ───────────────────────────────────────────────────────
    console_handler = None
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        handlers.append(console_handler)

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=shared_processors,
    )
    file_handler.setFormatter(json_formatter)

    if console_handler is not None:
        if json_format:
            console_handler.setFormatter(json_formatter)
        else:
            console_handler.setFormatter(
                structlog.stdlib.ProcessorFormatter(
                    processors=[
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.dev.ConsoleRenderer(colors=True),
                    ],
                    foreign_pre_chain=shared_processors,
                )
            )


def get_logger(name: str = "ibisdm", **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a bound logger with optional initial context values.

    Example:
        log = get_logger(__name__, component="engine")
        log.info("engine.rule_fired", rule="accommodate")
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


def bind_session(session_id: str) -> None:
    """Attach session_id to every log line emitted in this context."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def clear_session() -> None:
    """Clear session context vars at the end of a dialogue."""
    structlog.contextvars.clear_contextvars()
