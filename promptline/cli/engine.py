"""Line-editing engine backed by prompt_toolkit.

``LineEngine`` is the narrow surface ``LineEditorSession`` drives: read one
line, tune completion/hint behaviour, bind keys and write output without
corrupting an active prompt. ``PromptToolkitEngine`` maps it onto a
``PromptSession``.
"""

from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Protocol

from prompt_toolkit import PromptSession
from prompt_toolkit.application.current import get_app_or_none
from prompt_toolkit.application.run_in_terminal import run_in_terminal
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.history import History
from prompt_toolkit.input import Input
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.bindings.named_commands import get_by_name
from prompt_toolkit.output import ColorDepth, Output
from prompt_toolkit.shortcuts import print_formatted_text
from prompt_toolkit.styles import Style

from ..config.manager import DEFAULT_WORD_BREAK_CHARACTERS
from ..core.history import HistoryStore


@dataclass
class CompletionContext:
    """In/out parameter of completion and hint callbacks.

    ``length`` is how many trailing characters of the input the returned
    candidates replace. The engine seeds it with its own guess; callbacks may
    overwrite it.
    """

    length: int


CompletionCallback = Callable[[str, CompletionContext], List[str]]
HintCallback = Callable[[str, CompletionContext], List[str]]

# Action names accepted by ``bind_key`` mapped to prompt_toolkit readline commands.
KEY_ACTIONS = {
    "clear_screen": "clear-screen",
    "kill_to_beginning_of_word": "unix-word-rubout",
    "kill_to_whitespace_on_left": "backward-kill-word",
    "kill_to_end_of_word": "kill-word",
    "kill_to_end_of_line": "kill-line",
    "kill_to_beginning_of_line": "unix-line-discard",
    "move_cursor_to_beginning_of_line": "beginning-of-line",
    "move_cursor_to_end_of_line": "end-of-line",
    "move_cursor_one_word_left": "backward-word",
    "move_cursor_one_word_right": "forward-word",
    "history_previous": "previous-history",
    "history_next": "next-history",
    "history_incremental_search": "reverse-search-history",
    "yank": "yank",
    "yank_cycle": "yank-pop",
    "transpose_characters": "transpose-chars",
    "capitalize_word": "capitalize-word",
    "uppercase_word": "uppercase-word",
    "lowercase_word": "downcase-word",
    "undo": "undo",
    "complete_line": "complete",
    "send_eof": "end-of-file",
}

ENGINE_STYLE = Style.from_dict(
    {
        "auto-suggestion": "fg:ansibrightblack",
        "hint": "fg:ansibrightblack",
        "bottom-toolbar": "noreverse",
    }
)


class LineEngine(Protocol):
    """Raw line-editing primitive consumed by ``LineEditorSession``."""

    def input(self, prompt: str) -> Optional[str]: ...

    def set_word_break_characters(self, chars: str) -> None: ...

    def set_max_hint_rows(self, rows: int) -> None: ...

    def set_hint_delay(self, milliseconds: int) -> None: ...

    def set_double_tab_completion(self, enabled: bool) -> None: ...

    def set_complete_on_empty(self, enabled: bool) -> None: ...

    def set_beep_on_ambiguous_completion(self, enabled: bool) -> None: ...

    def set_no_color(self, disabled: bool) -> None: ...

    def bind_key(self, trigger: str, action_name: str) -> None: ...

    def install_window_change_handler(self, callback: Callable[[], None]) -> None: ...

    def set_completion_callback(self, callback: Optional[CompletionCallback]) -> None: ...

    def set_hint_callback(self, callback: Optional[HintCallback]) -> None: ...

    def print(self, text: str) -> None: ...

    def clear_screen(self) -> None: ...


def context_length(text: str, word_break_characters: str) -> int:
    """Length of the trailing run of characters that are not word breaks."""
    length = 0
    for char in reversed(text):
        if char in word_break_characters:
            break
        length += 1
    return length


class StoreHistory(History):
    """Read-only prompt_toolkit view over a ``HistoryStore``.

    The session decides what gets recorded, so lines accepted by the buffer
    are not appended here.
    """

    def __init__(self, store: HistoryStore) -> None:
        super().__init__()
        self.store = store

    async def load(self):  # type: ignore[override]
        for item in reversed(self.store.entries()):
            yield item

    def get_strings(self) -> list[str]:
        return self.store.entries()

    def append_string(self, string: str) -> None:
        return None

    def load_history_strings(self) -> Iterable[str]:
        return list(reversed(self.store.entries()))

    def store_string(self, string: str) -> None:
        return None


class _CallbackCompleter(Completer):
    def __init__(self, engine: "PromptToolkitEngine") -> None:
        self.engine = engine

    def get_completions(self, document: Document, complete_event: CompleteEvent):  # type: ignore[override]
        callback = self.engine.completion_callback
        if callback is None:
            return
        text = document.text_before_cursor
        if not text and not self.engine.complete_on_empty:
            return
        context = CompletionContext(context_length(text, self.engine.word_break_characters))
        candidates = callback(text, context)
        replace = max(0, min(context.length, len(text)))
        for candidate in candidates:
            yield Completion(candidate, start_position=-replace)


class _CallbackAutoSuggest(AutoSuggest):
    """Shows the first hint inline and the rest below the prompt."""

    def __init__(self, engine: "PromptToolkitEngine") -> None:
        self.engine = engine

    def get_suggestion(self, buffer: Buffer, document: Document) -> Optional[Suggestion]:
        hints, context = self.engine.compute_hints(document.text_before_cursor)
        self.engine.show_hint_rows(hints if len(hints) > 1 else [])
        if not hints or document.cursor_position != len(document.text):
            return None
        suffix = hints[0][context.length :]
        return Suggestion(suffix) if suffix else None

    async def get_suggestion_async(
        self, buffer: Buffer, document: Document
    ) -> Optional[Suggestion]:
        self.engine.show_hint_rows([])
        delay = self.engine.hint_delay_ms / 1000.0
        if delay > 0:
            await asyncio.sleep(delay)
        if buffer.document != document:
            return None
        return self.get_suggestion(buffer, document)


class PromptToolkitEngine:
    """``LineEngine`` implementation driving a prompt_toolkit ``PromptSession``."""

    def __init__(
        self,
        history: HistoryStore,
        *,
        input: Input | None = None,
        output: Output | None = None,
    ) -> None:
        self.history = history
        self.word_break_characters = DEFAULT_WORD_BREAK_CHARACTERS
        self.max_hint_rows = 3
        self.hint_delay_ms = 200
        self.double_tab_completion = False
        self.complete_on_empty = False
        self.beep_on_ambiguous_completion = False
        self.no_color = False
        self.completion_callback: Optional[CompletionCallback] = None
        self.hint_callback: Optional[HintCallback] = None
        self._bound_actions: dict[str, str] = {}
        self._tab_armed_text: Optional[str] = None
        self._resize_callback: Optional[Callable[[], None]] = None
        self._bindings = KeyBindings()
        self._install_tab_binding()
        self._session: PromptSession = PromptSession(
            history=StoreHistory(history),
            completer=_CallbackCompleter(self),
            complete_while_typing=False,
            auto_suggest=None,
            key_bindings=self._bindings,
            style=ENGINE_STYLE,
            input=input,
            output=output,
        )

    @property
    def session(self) -> PromptSession:
        return self._session

    @property
    def output(self) -> Output:
        return self._session.output

    def input(self, prompt: str) -> Optional[str]:
        """Read one line; ``None`` on Ctrl-D, Ctrl-C or closed input."""
        self._tab_armed_text = None
        self._session.bottom_toolbar = None
        try:
            return self._session.prompt(ANSI(prompt))
        except (EOFError, KeyboardInterrupt):
            return None
        finally:
            self._session.bottom_toolbar = None
            if self._resize_callback is not None:
                self._resize_callback()

    def set_word_break_characters(self, chars: str) -> None:
        self.word_break_characters = chars

    def set_max_hint_rows(self, rows: int) -> None:
        self.max_hint_rows = max(0, rows)

    def set_hint_delay(self, milliseconds: int) -> None:
        self.hint_delay_ms = max(0, milliseconds)

    def set_double_tab_completion(self, enabled: bool) -> None:
        self.double_tab_completion = enabled

    def set_complete_on_empty(self, enabled: bool) -> None:
        self.complete_on_empty = enabled

    def set_beep_on_ambiguous_completion(self, enabled: bool) -> None:
        self.beep_on_ambiguous_completion = enabled

    def set_no_color(self, disabled: bool) -> None:
        self.no_color = disabled
        self._session.color_depth = ColorDepth.MONOCHROME if disabled else None

    def bind_key(self, trigger: str, action_name: str) -> None:
        command = KEY_ACTIONS.get(action_name)
        if command is None:
            raise ValueError(f"Unknown key action: {action_name}")
        previous = self._bound_actions.get(action_name)
        if previous is not None:
            self._bindings.remove(previous)
        self._bindings.add(trigger)(get_by_name(command))
        self._bound_actions[action_name] = trigger

    def install_window_change_handler(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` on SIGWINCH and after every prompt.

        prompt_toolkit owns SIGWINCH while a prompt is on screen and restores
        this handler afterwards.
        """
        self._resize_callback = callback
        sigwinch = getattr(signal, "SIGWINCH", None)
        if sigwinch is None:
            return
        try:
            previous = signal.getsignal(sigwinch)
        except ValueError:
            return

        def _handler(signum: int, frame: Any) -> None:
            callback()
            if callable(previous):
                previous(signum, frame)

        try:
            signal.signal(sigwinch, _handler)
        except ValueError:
            # Not on the main thread; the post-prompt refresh still applies.
            pass

    def set_completion_callback(self, callback: Optional[CompletionCallback]) -> None:
        self.completion_callback = callback

    def set_hint_callback(self, callback: Optional[HintCallback]) -> None:
        self.hint_callback = callback
        self._session.auto_suggest = _CallbackAutoSuggest(self) if callback else None
        if callback is None:
            self._session.bottom_toolbar = None

    def compute_hints(self, text: str) -> tuple[list[str], CompletionContext]:
        context = CompletionContext(context_length(text, self.word_break_characters))
        callback = self.hint_callback
        if callback is None or (not text and not self.complete_on_empty):
            return [], context
        hints = [hint for hint in callback(text, context) if hint]
        context.length = max(0, min(context.length, len(text)))
        return hints, context

    def show_hint_rows(self, hints: list[str]) -> None:
        rows = hints[: self.max_hint_rows]
        if not rows:
            self._session.bottom_toolbar = None
            return
        fragments = []
        for index, hint in enumerate(rows):
            if index:
                fragments.append(("", "\n"))
            fragments.append(("class:hint", hint))
        self._session.bottom_toolbar = fragments

    def print(self, text: str) -> None:
        """Write ``text`` above the prompt when one is active, directly otherwise."""
        app = get_app_or_none()
        output = self._session.output

        def _write() -> None:
            print_formatted_text(ANSI(text), end="", output=output)

        if app is not None and app.is_running:
            run_in_terminal(_write)
            return
        _write()

    def clear_screen(self) -> None:
        app = get_app_or_none()
        if app is not None and app.is_running:
            app.renderer.clear()
            return
        output = self._session.output
        output.erase_screen()
        output.cursor_goto(0, 0)
        output.flush()

    def _install_tab_binding(self) -> None:
        @self._bindings.add("tab")
        def _(event):  # type: ignore[no-untyped-def]
            """Complete: unique match inserts, ambiguous extends the common prefix."""
            buf = event.current_buffer
            if buf.complete_state:
                buf.complete_next()
                return
            completions = list(
                buf.completer.get_completions(
                    buf.document, CompleteEvent(completion_requested=True)
                )
            )
            if not completions:
                self._tab_armed_text = None
                return
            if len(completions) == 1:
                buf.apply_completion(completions[0])
                self._tab_armed_text = None
                return
            replaced = -completions[0].start_position
            typed = buf.document.text_before_cursor[len(buf.document.text_before_cursor) - replaced :]
            common = os.path.commonprefix([c.text for c in completions])
            if len(common) > len(typed) and common.startswith(typed):
                buf.delete_before_cursor(replaced)
                buf.insert_text(common)
                self._tab_armed_text = None
                return
            if self.beep_on_ambiguous_completion:
                event.app.output.bell()
            if self.double_tab_completion and self._tab_armed_text != buf.text:
                self._tab_armed_text = buf.text
                return
            self._tab_armed_text = None
            buf.start_completion(select_first=False)
