"""
interfaces/cli.py - Dialogue CLI

Interactive REPL (and batch replay) driving one DialogueSession.
Uses rich for terminal rendering and aioconsole for async input.

The engine itself never blocks; this driver owns the waiting. It applies
dialogue.input_timeout_seconds to each prompt and ends the dialogue when the
user stays silent for longer.

Commands:
  /state     show the information state
  /rules     show the update-rule table in priority order
  /status    session summary
  /help      this help
  exit       leave (Ctrl+D works too)

Usage:
    ibisdm --domain travel.yaml
    ibisdm --domain travel.yaml --script demo.txt
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, Optional

import aioconsole
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from ibisdm.config.settings import Settings
from ibisdm.dialogue.engine import DialogueEngine
from ibisdm.dialogue.session import DialogueSession, SystemTurn
from ibisdm.dialogue.state import InformationState
from ibisdm.observability.logger import get_logger
from ibisdm.semantics.loader import DomainBundle

log = get_logger(__name__)

InputFn = Callable[[str], Awaitable[str]]

_HELP_TEXT = """
**Talking to the system**

Answer in plain notation: `paris`, `-paris`, `yes`, `no`, `dest(paris)`.
Ask with `?x.dest(x)` or `?return()`. Say `hello` or `quit`.

**Commands**

| Command | Description |
|---|---|
| `/state` | Show the information state |
| `/rules` | Show the update rules in priority order |
| `/status` | Session summary |
| `/help` | This help |
| `exit` | Leave |
"""


def script_input(lines: Iterable[str], console: Optional[Console] = None) -> InputFn:
    """Input function replaying `lines`, then signalling end of input."""
    pending = iter(list(lines))

    async def _next(prompt: str) -> str:
        try:
            line = next(pending)
        except StopIteration:
            raise EOFError from None
        if console is not None:
            console.print(f"[dim]{prompt}[/]{line}")
        return line

    return _next


class CLIInterface:
    """Wires Settings + DomainBundle → engine → session and runs the loop."""

    def __init__(
        self,
        settings: Settings,
        bundle: DomainBundle,
        console: Optional[Console] = None,
        input_fn: Optional[InputFn] = None,
    ):
        self.settings = settings
        self.bundle = bundle
        self.console = console or Console()
        self._input = input_fn or aioconsole.ainput

        self.engine = DialogueEngine.from_config(
            bundle.domain, settings.engine, database=bundle.database
        )
        self.session = DialogueSession.create(
            self.engine,
            bundle.grammar,
            plan=bundle.initial_plan,
            agenda=bundle.agenda,
        )

    # ── Startup ───────────────────────────────────────────────────────────────

    async def start(self) -> int:
        """Run the dialogue to completion. Returns a process exit code."""
        self._print_banner()
        turn = self.session.start(greet=self.settings.dialogue.greet_on_start)
        self._render_turn(turn)
        if turn.is_terminal and self.settings.dialogue.end_on_terminal:
            self._finish("dialogue complete")
            return 0
        try:
            await self._repl_loop()
        finally:
            self._cleanup()
        return 0

    def _print_banner(self) -> None:
        domain = self.bundle.domain
        self.console.print(
            Panel(
                f"[bold]ibisdm[/]  ·  "
                f"predicates: [cyan]{len(domain.preds0) + len(domain.preds1)}[/]  ·  "
                f"sorts: [cyan]{len(domain.sorts)}[/]  ·  "
                f"plans: [cyan]{len(domain.plans)}[/]  ·  "
                f"Session: [dim]{self.session.id}[/]\n\n"
                f"Type your reply or [bold]/help[/] for commands. "
                f"[bold]exit[/] or Ctrl+D to leave.",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    # ── REPL Loop ─────────────────────────────────────────────────────────────

    async def _read(self, prompt: str) -> Optional[str]:
        """One line of input, or None on EOF / interrupt / timeout."""
        timeout = self.settings.dialogue.input_timeout_seconds
        try:
            if timeout is None:
                return await self._input(prompt)
            return await asyncio.wait_for(self._input(prompt), timeout=timeout)
        except (EOFError, KeyboardInterrupt):
            return None
        except asyncio.TimeoutError:
            log.info("cli.input_timeout", session_id=self.session.id, timeout=timeout)
            self.console.print(f"\n[yellow]No input for {timeout:g}s, ending the dialogue.[/]")
            return None

    async def _repl_loop(self) -> None:
        while not self.session.is_closed:
            raw = await self._read(f"[{self.session.turn_count}]> ")
            if raw is None:
                self._finish("input closed")
                break

            raw = raw.strip()
            if not raw:
                continue
            if raw.lower() == "exit":
                self._finish("user exit")
                break

            if raw.startswith("/"):
                self._dispatch(raw)
                continue

            turn = self.session.respond(raw)
            self._render_turn(turn)
            if self.settings.dialogue.show_state:
                self._cmd_state()
            if turn.is_terminal and self.settings.dialogue.end_on_terminal:
                self._finish("dialogue complete")
                break

    def _finish(self, reason: str) -> None:
        if not self.session.is_closed:
            log.info("cli.dialogue_end", session_id=self.session.id, reason=reason)
            self.session.close()
        self.console.print(f"[dim]Goodbye ({reason}).[/]")

    # ── Command Dispatch ──────────────────────────────────────────────────────

    def _dispatch(self, raw: str) -> None:
        cmd = raw.split(maxsplit=1)[0].lower()
        handlers = {
            "/help":   self._print_help,
            "/state":  self._cmd_state,
            "/rules":  self._cmd_rules,
            "/status": self._cmd_status,
        }
        handler = handlers.get(cmd)
        if handler:
            handler()
        else:
            self.console.print(f"[yellow]Unknown command: {cmd}. Type /help for commands.[/]")

    def _print_help(self) -> None:
        self.console.print(Markdown(_HELP_TEXT))

    def _cmd_state(self) -> None:
        self.console.print(render_state(self.session.state))

    def _cmd_rules(self) -> None:
        table = Table(title="Update rules", box=box.ROUNDED, border_style="dim")
        table.add_column("#", no_wrap=True)
        table.add_column("Rule", style="cyan bold", no_wrap=True)
        table.add_column("Effect")
        for i, rule in enumerate(self.engine.rules, start=1):
            table.add_row(str(i), rule.name, rule.description)
        self.console.print(table)

    def _cmd_status(self) -> None:
        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column("Key", style="dim")
        table.add_column("Value")
        for key, value in self.session.status_summary().items():
            table.add_row(key, str(value))
        self.console.print(table)

    # ── Rendering ─────────────────────────────────────────────────────────────

    def _render_turn(self, turn: SystemTurn) -> None:
        text = turn.text.strip()
        if not text:
            return
        self.console.print(Panel(text, border_style="cyan", padding=(0, 2)))

    def _cleanup(self) -> None:
        log.info("cli.shutdown", **self.session.status_summary())


def render_state(state: InformationState) -> Table:
    """Two-column rendering of an information state."""
    snap = state.snapshot()
    table = Table(title="Information state", box=box.ROUNDED, border_style="dim")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value")
    for key in ("agenda", "plan", "bel", "committed", "qud", "pending"):
        table.add_row(key, ", ".join(snap[key]) or "[dim]-[/]")
    latest = ", ".join(snap["latest_moves"])
    table.add_row("latest", f"{snap['latest_speaker'] or '-'}: {latest}")
    return table


# ── Public entry point ────────────────────────────────────────────────────────


async def run_cli(
    settings: Settings,
    bundle: DomainBundle,
    log,
    script: Optional[Iterable[str]] = None,
    console: Optional[Console] = None,
) -> int:
    """
    Entry point called from main.py.

    Args:
        settings:  Loaded settings.
        bundle:    Domain, grammar and database loaded from the domain file.
        log:       Application-level logger.
        script:    Lines to replay instead of reading the terminal.
    """
    console = console or Console()
    input_fn = script_input(script, console) if script is not None else None
    cli = CLIInterface(settings=settings, bundle=bundle, console=console, input_fn=input_fn)

    log.info("cli.starting", session_id=cli.session.id, batch=script is not None)
    try:
        return await cli.start()
    except KeyboardInterrupt:
        log.info("cli.interrupted")
        return 130
