from __future__ import annotations

import sys
import threading
import time
from typing import Callable, Optional

from ..core.session_log import log_exception
from . import terminal

POLL_INTERVAL = 0.02
ESC_SEQUENCE_TIMEOUT = 0.05


class EscMonitor:
    """Watch stdin for Esc while a long-running task owns the terminal.

    ``start`` switches stdin to cbreak mode and polls it from a daemon thread;
    ``stop`` restores the saved terminal settings. ``pressed`` is set once a
    lone Esc arrives, after which ``on_escape`` is called from the monitor
    thread. Escape sequences such as arrow keys are skipped.
    """

    def __init__(self, on_escape: Optional[Callable[[], None]] = None) -> None:
        self.on_escape = on_escape
        self.pressed = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    def __enter__(self) -> "EscMonitor":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_active():
            return
        self.pressed.clear()
        self._stop_event.clear()
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name="esc-monitor", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=1.0)

    def stop(self) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout=1.0)
        self._thread = None

    def _run(self) -> None:
        try:
            fd = sys.stdin.fileno()
            old_settings = terminal.tcgetattr(fd)
            terminal.setcbreak(fd)
        except Exception:
            # stdin is not a terminal; there is nothing to watch.
            self._ready.set()
            return
        self._ready.set()
        try:
            if self._read_escape_key():
                self.pressed.set()
                if self.on_escape is not None:
                    self.on_escape()
        except Exception as exc:  # noqa: BLE001
            log_exception("esc-monitor", exc)
        finally:
            terminal.tcsetattr(fd, terminal.TCSADRAIN, old_settings)

    def _read_escape_key(self) -> bool:
        while not self._stop_event.is_set():
            if not terminal.kbhit():
                time.sleep(POLL_INTERVAL)
                continue
            if terminal.getch() != "\x1b":
                continue
            if not self._sequence_follows():
                return True
            # Arrow keys and friends arrive as \x1b plus more bytes; drop them.
            for _ in range(8):
                if not terminal.kbhit():
                    break
                terminal.getch()
        return False

    def _sequence_follows(self) -> bool:
        if terminal.kbhit():
            return True
        time.sleep(ESC_SEQUENCE_TIMEOUT)
        return terminal.kbhit()
