from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..config.manager import (
    DEFAULT_KEY_BINDINGS,
    DEFAULT_WORD_BREAK_CHARACTERS,
    SessionSettings,
)
from ..core.history import DEFAULT_MAX_HISTORY_SIZE, HistoryStore
from ..core.session_log import log_debug, log_info, log_input, log_warn
from .engine import (
    CompletionCallback,
    CompletionContext,
    KEY_ACTIONS,
    HintCallback,
    LineEngine,
    PromptToolkitEngine,
)
from .terminal import TerminalCapabilityProbe

EngineFactory = Callable[[HistoryStore], LineEngine]
PathLike = Union[str, Path]

LOG_SOURCE = "readline"


class LineEditorSession:
    """Reads lines with history, completion and hints on top of a ``LineEngine``.

    The session owns the history policy (blank lines are never recorded,
    every recorded line is written through to the history file) and bridges
    caller callbacks into the engine. It is not reentrant.
    """

    def __init__(
        self,
        probe: TerminalCapabilityProbe | None = None,
        *,
        engine_factory: EngineFactory | None = None,
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
        unique_history: bool = True,
        word_break_characters: str = DEFAULT_WORD_BREAK_CHARACTERS,
        max_hint_rows: int = 3,
        hint_delay_ms: int = 200,
        double_tab_completion: bool = False,
        complete_on_empty: bool = False,
        beep_on_ambiguous_completion: bool = False,
        key_bindings: Dict[str, str] | None = None,
    ) -> None:
        self.probe = probe or TerminalCapabilityProbe()
        self._history = HistoryStore(max_history_size, unique=unique_history)
        self.engine: LineEngine = (engine_factory or PromptToolkitEngine)(self._history)
        self._history_file: Optional[Path] = None
        self._completion_callback: Optional[CompletionCallback] = None
        self._hint_callback: Optional[HintCallback] = None
        self._key_bindings: Dict[str, str] = {}
        self._word_break_characters = word_break_characters
        self._color_enabled = False
        self._eof = False
        self._reading = False

        self.engine.set_word_break_characters(word_break_characters)
        self.engine.set_max_hint_rows(max_hint_rows)
        self.engine.set_hint_delay(hint_delay_ms)
        self.engine.set_double_tab_completion(double_tab_completion)
        self.engine.set_complete_on_empty(complete_on_empty)
        self.engine.set_beep_on_ambiguous_completion(beep_on_ambiguous_completion)
        self.set_color_enabled(self.probe.supports_color())
        bindings = dict(DEFAULT_KEY_BINDINGS)
        bindings.update(key_bindings or {})
        for action, trigger in bindings.items():
            self.bind_key(action, trigger)
        self.engine.install_window_change_handler(self.probe.refresh_size)
        log_debug(LOG_SOURCE, "terminal.capabilities", asdict(self.probe.capabilities))

    @classmethod
    def from_settings(
        cls,
        settings: SessionSettings,
        probe: TerminalCapabilityProbe | None = None,
        *,
        engine_factory: EngineFactory | None = None,
    ) -> "LineEditorSession":
        bindings = {}
        for action, trigger in settings.key_bindings.items():
            if action in KEY_ACTIONS:
                bindings[action] = trigger
            else:
                log_warn(LOG_SOURCE, "keys.unknown_action", {"action": action, "key": trigger})
        session = cls(
            probe,
            engine_factory=engine_factory,
            max_history_size=settings.max_history_size,
            unique_history=settings.unique_history,
            word_break_characters=settings.word_break_characters,
            max_hint_rows=settings.max_hint_rows,
            hint_delay_ms=settings.hint_delay_ms,
            double_tab_completion=settings.double_tab_completion,
            complete_on_empty=settings.complete_on_empty,
            beep_on_ambiguous_completion=settings.beep_on_ambiguous_completion,
            key_bindings=bindings,
        )
        if settings.color is False:
            session.set_color_enabled(False)
        if settings.history_file is not None:
            session.set_history_file(settings.history_file)
        return session

    def __enter__(self) -> "LineEditorSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Persist history one last time."""
        if self._history_file is not None:
            self.save_history()

    # Reading

    def read_line(self, prompt: str = "") -> Optional[str]:
        """Return the submitted line, or None when input has ended."""
        if self._reading:
            raise RuntimeError("read_line is already waiting for input")
        self._eof = False
        self._reading = True
        try:
            line = self.engine.input(prompt)
        finally:
            self._reading = False
        if line is None:
            self._eof = True
            log_debug(LOG_SOURCE, "input.eof")
            return None
        if line.strip():
            self.add_history(line)
        return line

    def is_eof(self) -> bool:
        return self._eof

    @property
    def eof(self) -> bool:
        return self._eof

    # History

    @property
    def history_file(self) -> Optional[Path]:
        return self._history_file

    def set_history_file(self, path: PathLike) -> None:
        """Use ``path`` for persistence; its content replaces the in-memory history.

        A path with no file yet starts an empty history.
        """
        self._history_file = Path(path).expanduser()
        try:
            self._history_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log_warn(
                LOG_SOURCE,
                "history.mkdir_failed",
                {"path": str(self._history_file.parent), "error": str(exc)},
            )
        log_info(LOG_SOURCE, "history.file", str(self._history_file))
        if not self.load_history() and not self._history_file.exists():
            self._history.clear()

    def load_history(self) -> bool:
        if self._history_file is None:
            return False
        if self._history.load(self._history_file):
            return True
        if self._history_file.exists():
            log_warn(LOG_SOURCE, "history.load_failed", str(self._history_file))
        return False

    def save_history(self) -> bool:
        if self._history_file is None:
            return False
        if self._history.save(self._history_file):
            return True
        log_warn(LOG_SOURCE, "history.save_failed", str(self._history_file))
        return False

    def add_history(self, line: str) -> bool:
        """Record ``line`` and write it through to the history file."""
        if not self._history.add(line):
            return False
        log_input(LOG_SOURCE, line)
        if self._history_file is not None and not self._history.sync(self._history_file):
            log_warn(LOG_SOURCE, "history.sync_failed", str(self._history_file))
        return True

    def clear_history(self) -> None:
        self._history.clear()

    def history_size(self) -> int:
        return self._history.size()

    def history_entries(self) -> list[str]:
        return self._history.entries()

    def set_max_history_size(self, size: int) -> None:
        self._history.set_max_size(size)

    def set_unique_history(self, enabled: bool) -> None:
        self._history.unique = enabled

    # Callbacks

    def set_completion_callback(self, callback: Optional[CompletionCallback]) -> None:
        self._completion_callback = callback
        self.engine.set_completion_callback(self._bridge(callback))

    def set_hint_callback(self, callback: Optional[HintCallback]) -> None:
        self._hint_callback = callback
        self.engine.set_hint_callback(self._bridge(callback))

    def _bridge(
        self, callback: Optional[CompletionCallback]
    ) -> Optional[CompletionCallback]:
        if callback is None:
            return None

        def _call(text: str, context: CompletionContext) -> list[str]:
            results = callback(text, context)
            return [str(item) for item in results or ()]

        return _call

    # Configuration

    @property
    def color_enabled(self) -> bool:
        return self._color_enabled

    def set_color_enabled(self, enabled: bool) -> None:
        """Toggle color; terminals without color support stay monochrome."""
        self._color_enabled = bool(enabled) and self.probe.supports_color()
        self.engine.set_no_color(not self._color_enabled)

    @property
    def word_break_characters(self) -> str:
        return self._word_break_characters

    def set_word_break_characters(self, chars: str) -> None:
        self._word_break_characters = chars
        self.engine.set_word_break_characters(chars)

    @property
    def key_bindings(self) -> Dict[str, str]:
        return dict(self._key_bindings)

    def bind_key(self, action: str, trigger: str) -> None:
        self.engine.bind_key(trigger, action)
        self._key_bindings[action] = trigger

    # Output

    def print(self, text: str) -> None:
        self.engine.print(text)

    def clear_screen(self) -> None:
        self.engine.clear_screen()

    @property
    def terminal_capability(self) -> TerminalCapabilityProbe:
        return self.probe
