from __future__ import annotations

import argparse
import errno
import sys
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional, TextIO

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from ..config import ConfigManager, PromptlinePaths, SessionSettings
from ..core.session_log import (
    SessionLogger,
    log_exception,
    set_active_logger,
)
from .engine import CompletionContext
from .interrupt import EscMonitor
from .session import EngineFactory, LineEditorSession
from .terminal import TerminalCapabilityProbe

PROMPT = "promptline> "
BUILTIN_COMMANDS = ["exit", "quit", "clear", "help", "history", "info"]

LineHandler = Callable[[str, threading.Event], Optional[str]]


def echo_handler(text: str, interrupted: threading.Event) -> Optional[str]:
    return text


def complete_builtin(text: str, context: CompletionContext) -> list[str]:
    """Complete builtin command names from the typed prefix."""
    trimmed = text.strip().lower()
    if " " in trimmed:
        return []
    context.length = len(trimmed)
    return [cmd for cmd in BUILTIN_COMMANDS if cmd.startswith(trimmed)]


def hint_builtin(text: str, context: CompletionContext) -> list[str]:
    """Hint the builtins that extend a non-empty prefix."""
    if not text.strip():
        return []
    trimmed = text.strip().lower()
    return [cmd for cmd in complete_builtin(text, context) if cmd != trimmed]


class PromptlineCLI:
    """Interactive read-eval loop built on ``LineEditorSession``.

    Enhanced mode (stdin and stdout are terminals) gets history, completion
    and hints; otherwise lines are read from plain stdin.
    """

    def __init__(
        self,
        root: Path | None = None,
        console: Console | None = None,
        *,
        handler: LineHandler | None = None,
        probe: TerminalCapabilityProbe | None = None,
        engine_factory: EngineFactory | None = None,
        settings: SessionSettings | None = None,
        stdin: TextIO | None = None,
    ) -> None:
        self.console = console or Console()
        self.root = root or Path.cwd()
        self.paths = PromptlinePaths(self.root)
        self.config_manager = ConfigManager(self.paths, console=self.console)
        self.settings = settings or self.config_manager.load_settings()
        self.session_logger = SessionLogger(self.paths, self.settings.debug)
        set_active_logger(self.session_logger)
        self.probe = probe or TerminalCapabilityProbe()
        self.handler: LineHandler = handler or echo_handler
        self.engine_factory = engine_factory
        self.stdin = stdin
        self.session: LineEditorSession | None = None

    def run(self) -> int:
        try:
            if self.probe.use_enhanced_mode():
                return self.run_enhanced()
            return self.run_simple()
        except Exception as exc:  # noqa: BLE001
            self.session_logger.log_exception("cli", exc)
            raise
        finally:
            self.session_logger.close()

    def create_session(self) -> LineEditorSession:
        session = LineEditorSession.from_settings(
            self.settings, self.probe, engine_factory=self.engine_factory
        )
        session.set_completion_callback(complete_builtin)
        session.set_hint_callback(hint_builtin)
        return session

    def run_enhanced(self) -> int:
        self.session = self.create_session()
        self._print_banner(enhanced=True)
        try:
            while True:
                line = self.session.read_line(PROMPT)
                if self.session.is_eof():
                    self.console.print()
                    self.console.print("Goodbye!")
                    break
                if not self._dispatch(line or "", enhanced=True):
                    break
        finally:
            self.session.close()
        return 0

    def run_simple(self) -> int:
        stream = self.stdin or sys.stdin
        interactive = self.probe.is_output_interactive()
        if interactive:
            self._print_banner(enhanced=False)
        while True:
            if interactive:
                self.console.print(PROMPT, end="")
            line = stream.readline()
            if line == "":
                if interactive:
                    self.console.print()
                    self.console.print("Goodbye!")
                break
            if not self._dispatch(line.rstrip("\r\n"), enhanced=False):
                break
        return 0

    def _dispatch(self, raw: str, *, enhanced: bool) -> bool:
        """Handle one line; return False to leave the loop."""
        text = raw.strip()
        if not text:
            return True
        command = text.lower()
        interactive = enhanced or self.probe.is_output_interactive()
        if command in {"exit", "quit"}:
            if interactive:
                self.console.print("Goodbye!")
            return False
        if command == "clear":
            if self.session is None:
                self.console.print("[dim]No history in simple mode.[/dim]")
                return True
            self.session.clear_history()
            if interactive:
                self.console.print("History cleared.")
            return True
        if command == "help":
            self._show_help(enhanced=enhanced)
            return True
        if command == "history":
            self._show_history()
            return True
        if command == "info":
            self.console.print(capabilities_table(self.probe))
            return True
        self._run_handler(text, enhanced=enhanced)
        return True

    def _run_handler(self, text: str, *, enhanced: bool) -> None:
        interrupted = threading.Event()
        monitor: EscMonitor | None = EscMonitor(on_escape=interrupted.set) if enhanced else None
        try:
            if monitor is not None:
                monitor.start()
            result = self.handler(text, interrupted)
        except Exception as exc:  # noqa: BLE001
            log_exception("handler", exc)
            self.console.print(f"[red]Error: {exc}[/red]")
            return
        finally:
            if monitor is not None:
                monitor.stop()
        if interrupted.is_set():
            self.console.print("[yellow]Interrupted.[/yellow]")
        if result:
            self.console.print(result, markup=False, highlight=False)

    def _print_banner(self, *, enhanced: bool) -> None:
        self.console.print("[bold cyan]promptline[/bold cyan] - interactive line reader")
        self.console.print("Type 'exit' or 'quit' to exit, 'clear' to clear history")
        if enhanced and self.probe.supports_color():
            self.console.print("(Enhanced mode with line editing)")
        elif not enhanced:
            self.console.print("(Running in simple mode)")
        self.console.print()

    def _show_help(self, *, enhanced: bool) -> None:
        lines = [
            "**Commands**",
            "",
            "- `exit`, `quit`: leave promptline",
            "- `clear`: clear input history",
            "- `history`: list input history",
            "- `info`: show terminal capabilities",
            "- `help`: show this help message",
        ]
        if enhanced:
            lines.extend(
                [
                    "",
                    "**Keyboard shortcuts**",
                    "",
                    "- `Up/Down`: browse history",
                    "- `Ctrl+R`: search history",
                    "- `Ctrl+A/E`: move to start/end of line",
                    "- `Ctrl+K`: delete to end of line",
                    "- `Ctrl+W`: delete word",
                    "- `Ctrl+L`: clear screen",
                    "- `Tab`: complete",
                    "- `Esc`: interrupt a running command",
                ]
            )
        self.console.print(Panel(Markdown("\n".join(lines)), title="Help", border_style="cyan"))

    def _show_history(self) -> None:
        if self.session is None or not self.session.history_size():
            self.console.print("[dim]No history.[/dim]")
            return
        table = Table(title="History", show_lines=False)
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Entry")
        for index, entry in enumerate(self.session.history_entries(), start=1):
            table.add_row(str(index), entry)
        self.console.print(table)


def capabilities_table(probe: TerminalCapabilityProbe) -> Table:
    table = Table(title="Terminal capabilities")
    table.add_column("Capability", style="cyan")
    table.add_column("Value")
    for key, value in asdict(probe.capabilities).items():
        table.add_row(key, repr(value) if isinstance(value, str) else str(value))
    table.add_row("enhanced_mode", str(probe.use_enhanced_mode()))
    return table


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="promptline - interactive line reader")
    parser.add_argument("-v", "--version", action="store_true", help="Show version and exit")
    parser.add_argument("--history", help="History file (default: .promptline/history)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored input")
    parser.add_argument(
        "--debug",
        help="Write a session log: all, session, error, warn, info or debug",
    )
    parser.add_argument(
        "--info", action="store_true", help="Print terminal capabilities and exit"
    )
    args = parser.parse_args(argv)
    if args.version:
        from promptline import __version__

        print(f"promptline {__version__}")
        return
    console = Console()
    if args.info:
        console.print(capabilities_table(TerminalCapabilityProbe()))
        return
    root = Path.cwd()
    settings = ConfigManager(PromptlinePaths(root), console=console).load_settings()
    if args.history:
        settings.history_file = Path(args.history).expanduser()
    if args.no_color:
        settings.color = False
    if args.debug:
        settings.debug = args.debug
    try:
        code = PromptlineCLI(root=root, console=console, settings=settings).run()
        raise SystemExit(code)
    except BrokenPipeError:
        return
    except KeyboardInterrupt:
        return
    except OSError as exc:
        if exc.errno == errno.EPIPE:
            return
        log_exception("cli", exc)
        raise


if __name__ == "__main__":
    main()
