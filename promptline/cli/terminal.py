"""
Cross-platform terminal control and capability detection.

Provides terminal control functions for both Unix/Linux/macOS and Windows.
On Unix systems, uses termios/tty/ioctl.
On Windows, uses msvcrt and the kernel32 console API.

``TerminalCapabilityProbe`` reads file descriptors and environment variables
once and answers interactivity, color, Unicode and size queries from an
immutable snapshot.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional, Tuple

DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24

STDIN_FILENO = 0
STDOUT_FILENO = 1

if sys.platform == "win32":
    import ctypes
    import msvcrt
    from ctypes import wintypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)

    STD_INPUT_HANDLE = -10
    STD_OUTPUT_HANDLE = -11
    ENABLE_PROCESSED_INPUT = 0x0001
    ENABLE_LINE_INPUT = 0x0002
    ENABLE_ECHO_INPUT = 0x0004
    ENABLE_EXTENDED_FLAGS = 0x0080
    ENABLE_QUICK_EDIT_MODE = 0x0040

    class _Coord(ctypes.Structure):
        _fields_ = [("X", wintypes.SHORT), ("Y", wintypes.SHORT)]

    class _SmallRect(ctypes.Structure):
        _fields_ = [
            ("Left", wintypes.SHORT),
            ("Top", wintypes.SHORT),
            ("Right", wintypes.SHORT),
            ("Bottom", wintypes.SHORT),
        ]

    class _ConsoleScreenBufferInfo(ctypes.Structure):
        _fields_ = [
            ("dwSize", _Coord),
            ("dwCursorPosition", _Coord),
            ("wAttributes", wintypes.WORD),
            ("srWindow", _SmallRect),
            ("dwMaximumWindowSize", _Coord),
        ]

    kernel32.GetStdHandle.argtypes = [wintypes.DWORD]
    kernel32.GetStdHandle.restype = wintypes.HANDLE
    kernel32.GetConsoleMode.argtypes = [wintypes.HANDLE, wintypes.LPDWORD]
    kernel32.GetConsoleMode.restype = wintypes.BOOL
    kernel32.SetConsoleMode.argtypes = [wintypes.HANDLE, wintypes.DWORD]
    kernel32.SetConsoleMode.restype = wintypes.BOOL
    kernel32.GetConsoleScreenBufferInfo.argtypes = [
        wintypes.HANDLE,
        ctypes.POINTER(_ConsoleScreenBufferInfo),
    ]
    kernel32.GetConsoleScreenBufferInfo.restype = wintypes.BOOL

    @dataclass(frozen=True)
    class _TerminalSettings:
        handle: int
        mode: int

    def _std_handle(which: int) -> int:
        handle = kernel32.GetStdHandle(which)
        if handle is None or handle == wintypes.HANDLE(-1).value:
            raise OSError("Failed to get Windows console handle")
        return int(handle)

    def tcgetattr(fd: int) -> _TerminalSettings:
        """Get terminal settings (Windows)."""
        handle = _std_handle(STD_INPUT_HANDLE)
        mode = wintypes.DWORD()
        if not kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
            raise OSError("Failed to read Windows console mode")
        return _TerminalSettings(handle=handle, mode=mode.value)

    def tcsetattr(fd: int, when: int, settings: _TerminalSettings) -> None:
        """Set terminal settings (Windows)."""
        if not kernel32.SetConsoleMode(settings.handle, settings.mode):
            raise OSError("Failed to restore Windows console mode")

    def setcbreak(fd: int) -> None:
        """Set terminal to cbreak mode (Windows)."""
        settings = tcgetattr(fd)
        mode = settings.mode
        mode &= ~(ENABLE_LINE_INPUT | ENABLE_ECHO_INPUT | ENABLE_QUICK_EDIT_MODE)
        mode |= ENABLE_EXTENDED_FLAGS
        if not kernel32.SetConsoleMode(settings.handle, mode):
            raise OSError("Failed to set Windows console mode")

    TCSADRAIN = 0  # Dummy value for Windows compatibility

    def kbhit() -> bool:
        """Check if a keypress is available (Windows)."""
        return msvcrt.kbhit()

    def getch() -> str:
        """Get a single character from stdin (Windows)."""
        if hasattr(msvcrt, "getwch"):
            return msvcrt.getwch()
        return msvcrt.getch().decode("utf-8", errors="ignore")

    def query_window_size(fd: int = STDOUT_FILENO) -> Optional[Tuple[int, int]]:
        """Return ``(columns, rows)`` of the visible console window, or None."""
        try:
            handle = _std_handle(STD_OUTPUT_HANDLE)
        except OSError:
            return None
        info = _ConsoleScreenBufferInfo()
        if not kernel32.GetConsoleScreenBufferInfo(handle, ctypes.byref(info)):
            return None
        window = info.srWindow
        return window.Right - window.Left + 1, window.Bottom - window.Top + 1

else:
    import fcntl
    import struct
    import termios
    import tty

    _TerminalSettings = Any  # type: ignore[misc]
    tcgetattr = termios.tcgetattr  # type: ignore[assignment]
    tcsetattr = termios.tcsetattr  # type: ignore[assignment]
    TCSADRAIN = termios.TCSADRAIN
    setcbreak = tty.setcbreak  # type: ignore[assignment]

    import select

    def kbhit() -> bool:
        """Check if a keypress is available (Unix)."""
        return select.select([sys.stdin], [], [], 0)[0] != []

    def getch() -> str:
        """Get a single character from stdin (Unix)."""
        return sys.stdin.read(1)

    def query_window_size(fd: int = STDOUT_FILENO) -> Optional[Tuple[int, int]]:
        """Return ``(columns, rows)`` reported by TIOCGWINSZ, or None."""
        try:
            packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, struct.pack("HHHH", 0, 0, 0, 0))
        except OSError:
            return None
        rows, columns, _, _ = struct.unpack("HHHH", packed)
        return columns, rows


# Terminals known to render ANSI colors. A TERM value matches an entry when it
# is equal to it or extends it with a "-" suffix (e.g. "screen-bce").
COLOR_TERMS = (
    "xterm",
    "xterm-color",
    "xterm-256color",
    "screen",
    "screen-256color",
    "tmux",
    "tmux-256color",
    "linux",
    "cygwin",
    "vt100",
    "rxvt",
    "rxvt-unicode",
    "rxvt-256color",
    "ansi",
    "konsole",
    "gnome",
    "gnome-256color",
    "alacritty",
    "kitty",
    "iterm",
    "iterm2",
    "eterm",
    "putty",
    "putty-256color",
)
COLOR_TERM_PATTERNS = ("256color", "color", "ansi")
LOCALE_VARS = ("LC_ALL", "LC_CTYPE", "LANG")


def check_color_support(
    stdout_is_tty: bool, term_type: str, environ: Mapping[str, str]
) -> bool:
    """Decide whether stdout can render ANSI colors.

    TERM is consulted first, then COLORTERM, then the FORCE_COLOR/CLICOLOR
    overrides. Nothing is colored when stdout is not a terminal.
    """
    if not stdout_is_tty or not term_type:
        return False
    for term in COLOR_TERMS:
        if term_type == term or term_type.startswith(term + "-"):
            return True
    if any(pattern in term_type for pattern in COLOR_TERM_PATTERNS):
        return True
    if "COLORTERM" in environ:
        return True
    if "FORCE_COLOR" in environ or environ.get("CLICOLOR", "0") != "0":
        return True
    return False


def check_unicode_support(environ: Mapping[str, str], platform: str) -> bool:
    """Return True when the locale (or the platform console) handles UTF-8."""
    for var in LOCALE_VARS:
        value = environ.get(var, "").upper()
        if "UTF-8" in value or "UTF8" in value:
            return True
    return platform == "win32"


def _positive_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None


@dataclass(frozen=True)
class TerminalCapabilities:
    """Snapshot of what the attached terminal supports."""

    stdin_is_tty: bool = False
    stdout_is_tty: bool = False
    term_type: str = ""
    color_support: bool = False
    unicode_support: bool = False
    columns: int = DEFAULT_COLUMNS
    rows: int = DEFAULT_ROWS


class TerminalCapabilityProbe:
    """Detects terminal capabilities once; only the size can be refreshed.

    Every ambient input can be injected so tests can run against a fixed
    environment instead of the real process state.
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        isatty: Callable[[int], bool] | None = None,
        size_query: Callable[[], Optional[Tuple[int, int]]] | None = None,
        platform: str | None = None,
    ) -> None:
        self._environ = environ if environ is not None else os.environ
        self._isatty = isatty or _safe_isatty
        self._size_query = size_query or query_window_size
        self._platform = platform or sys.platform
        self._caps = TerminalCapabilities()
        self.detect()

    def detect(self) -> None:
        stdin_is_tty = self._isatty(STDIN_FILENO)
        stdout_is_tty = self._isatty(STDOUT_FILENO)
        term_type = self._environ.get("TERM", "") or ""
        columns, rows = self.detect_size()
        self._caps = TerminalCapabilities(
            stdin_is_tty=stdin_is_tty,
            stdout_is_tty=stdout_is_tty,
            term_type=term_type,
            color_support=check_color_support(stdout_is_tty, term_type, self._environ),
            unicode_support=check_unicode_support(self._environ, self._platform),
            columns=columns,
            rows=rows,
        )

    def detect_size(self) -> Tuple[int, int]:
        """Return ``(columns, rows)`` from the OS, then COLUMNS/LINES, then 80x24."""
        columns, rows = DEFAULT_COLUMNS, DEFAULT_ROWS
        try:
            reported = self._size_query()
        except OSError:
            reported = None
        if reported is not None and reported[0] > 0:
            columns = reported[0]
            if reported[1] > 0:
                rows = reported[1]
            return columns, rows
        env_columns = _positive_int(self._environ.get("COLUMNS"))
        if env_columns is not None:
            columns = env_columns
        env_rows = _positive_int(self._environ.get("LINES"))
        if env_rows is not None:
            rows = env_rows
        return columns, rows

    def refresh_size(self) -> None:
        """Re-query the window size. Safe to call from a signal handler."""
        columns, rows = self.detect_size()
        self._caps = replace(self._caps, columns=columns, rows=rows)

    @property
    def capabilities(self) -> TerminalCapabilities:
        return self._caps

    @property
    def term_type(self) -> str:
        return self._caps.term_type

    @property
    def columns(self) -> int:
        return self._caps.columns

    @property
    def rows(self) -> int:
        return self._caps.rows

    def is_interactive(self) -> bool:
        return self._caps.stdin_is_tty

    def is_output_interactive(self) -> bool:
        return self._caps.stdout_is_tty

    def supports_color(self) -> bool:
        return self._caps.color_support

    def supports_unicode(self) -> bool:
        return self._caps.unicode_support

    def use_enhanced_mode(self) -> bool:
        """Line editing needs both ends attached to a terminal."""
        return self._caps.stdin_is_tty and self._caps.stdout_is_tty


def _safe_isatty(fd: int) -> bool:
    try:
        return os.isatty(fd)
    except OSError:
        return False


__all__ = [
    "tcgetattr",
    "tcsetattr",
    "TCSADRAIN",
    "setcbreak",
    "kbhit",
    "getch",
    "query_window_size",
    "_TerminalSettings",
    "COLOR_TERMS",
    "check_color_support",
    "check_unicode_support",
    "TerminalCapabilities",
    "TerminalCapabilityProbe",
]
