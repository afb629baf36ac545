"""
main.py - ibisdm Entry Point

Usage:
    ibisdm --domain travel.yaml                     # interactive dialogue
    ibisdm --domain travel.yaml --script demo.txt   # replay a script
    ibisdm --log-level DEBUG
    ibisdm --config path/to/config.yaml
    python -m ibisdm ...
"""

from __future__ import annotations

# ─────────────────────────────────────────────────────────────────────────────
# Load environment variables before settings are read
# ─────────────────────────────────────────────────────────────────────────────

from pathlib import Path

from dotenv import load_dotenv


def _find_env_file() -> Path | None:
    """Walk up from CWD looking for a .env file."""
    cwd = Path.cwd()
    for d in [cwd, *cwd.parents]:
        candidate = d / ".env"
        if candidate.is_file():
            return candidate
    return None


_env_path = _find_env_file()
if _env_path:
    load_dotenv(dotenv_path=_env_path)

# ─────────────────────────────────────────────────────────────────────────────
import argparse
import asyncio
import sys


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ibisdm",
        description="ibisdm - Information State Update dialogue manager",
    )
    parser.add_argument(
        "--domain",
        default=None,
        help="Domain file (YAML). Overrides dialogue.domain_file from config.",
    )
    parser.add_argument(
        "--script",
        default=None,
        help="Replay user turns from this file (one utterance per line) instead of the terminal.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $IBISDM_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if config.yaml has
    invalid values or validate_all() finds cross-field problems.
    """
    from pydantic import ValidationError

    from ibisdm.config.settings import ConfigError, load_settings
    from ibisdm.observability.logger import get_logger, setup_logging

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\nConfig validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your environment and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError) as exc:
        print(f"\nFailed to load config: {type(exc).__name__}: {exc}\n", file=sys.stderr)
        sys.exit(1)

    # CLI --domain overrides config.yaml
    if args.domain:
        settings.dialogue.domain_file = args.domain

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    setup_logging(
        level=args.log_level or settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.log_json_format,
        console_output=settings.log_console_output,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.logging.backup_count,
    )

    log = get_logger("ibisdm.main")
    return settings, log


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings, log = bootstrap(args)

    from ibisdm.exceptions import DomainFileError, IbisError
    from ibisdm.interfaces.cli import run_cli
    from ibisdm.semantics.loader import load_domain_file

    if not settings.dialogue.domain_file:
        print("No domain file given. Use --domain FILE or set dialogue.domain_file.", file=sys.stderr)
        return 1

    try:
        bundle = load_domain_file(settings.dialogue.domain_file)
    except DomainFileError as exc:
        log.error("ibisdm.domain_load_failed", error=str(exc))
        print(f"\nCould not load domain: {exc}\n", file=sys.stderr)
        return 1

    script = None
    if args.script:
        try:
            script = Path(args.script).read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            print(f"\nCould not read script: {exc}\n", file=sys.stderr)
            return 1

    log.info("ibisdm.starting", domain=settings.dialogue.domain_file, batch=script is not None)
    try:
        return await run_cli(settings, bundle, log, script=script)
    except IbisError as exc:
        # structural failures end the dialogue
        log.error("ibisdm.dialogue_failed", error=str(exc), error_type=type(exc).__name__)
        print(f"\nDialogue aborted: {type(exc).__name__}: {exc}\n", file=sys.stderr)
        return 2


def run() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))
