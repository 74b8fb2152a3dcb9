"""Markdown debug log for a promptline session.

Entries are appended in arrival order to ``.promptline/logs/``. Nothing is
written unless the ``debug`` setting selects a log type or a level.
"""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config.paths import PromptlinePaths

LOG_LEVELS = ("error", "warn", "info", "debug")
LOG_TYPE_SESSION = "session"
_ENABLE_ALL = {"all", "true", "1", "yes", "y", "on"}


@dataclass(frozen=True)
class LogSelection:
    enabled_types: frozenset[str] = frozenset()
    enabled_levels: frozenset[str] = frozenset()

    @property
    def enabled(self) -> bool:
        return bool(self.enabled_types or self.enabled_levels)


def _debug_tokens(raw: Any) -> list[str]:
    if raw is True:
        return ["all"]
    if isinstance(raw, str):
        return [token.strip().lower() for token in raw.split(",")]
    if isinstance(raw, (list, tuple, set)):
        return [item.strip().lower() for item in raw if isinstance(item, str)]
    return []


def resolve_debug_config(raw: Any) -> LogSelection:
    """Map the ``debug`` setting to the log types and levels to record.

    Accepts a bool, a comma-separated string or a list of names. ``all`` (or
    a truthy word) enables everything, ``session`` records submitted lines and
    a level name enables that level plus every more severe one. Anything else
    is ignored.
    """
    types: set[str] = set()
    levels: set[str] = set()
    for token in _debug_tokens(raw):
        if token in _ENABLE_ALL:
            types.add(LOG_TYPE_SESSION)
            levels.update(LOG_LEVELS)
        elif token == LOG_TYPE_SESSION:
            types.add(token)
        elif token in LOG_LEVELS:
            levels.update(LOG_LEVELS[: LOG_LEVELS.index(token) + 1])
    return LogSelection(frozenset(types), frozenset(levels))


def _format_content(content: Any) -> str:
    if isinstance(content, (dict, list)):
        body = json.dumps(content, indent=2, ensure_ascii=False, default=str)
        return f"```json\n{body}\n```"
    body = "" if content is None else str(content)
    return f"```text\n{body.rstrip()}\n```"


class SessionLogger:
    """Appends submitted lines and diagnostics to a per-session Markdown file."""

    def __init__(self, paths: PromptlinePaths, debug_config: Any) -> None:
        self.paths = paths
        self._session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._started_at = datetime.now(timezone.utc)
        self._path: Path | None = None
        self._selection = resolve_debug_config(debug_config)
        self.enabled = self._selection.enabled

    @property
    def path(self) -> Path | None:
        return self._path

    def close(self) -> None:
        self.enabled = False

    def log_input(self, source: str, line: str) -> None:
        if line and self._wants(LOG_TYPE_SESSION in self._selection.enabled_types):
            self._append(LOG_TYPE_SESSION, source, "input.line", line)

    def log_level(self, source: str, level: str, event: str, content: Any | None = None) -> None:
        if self._wants(level in self._selection.enabled_levels):
            self._append(level, source, event, content)

    def log_exception(self, source: str, exc: BaseException) -> None:
        if not self._wants("error" in self._selection.enabled_levels):
            return
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        location = f"{frames[-1].filename}:{frames[-1].lineno} in {frames[-1].name}" if frames else None
        self._append(
            "error",
            source,
            "exception",
            {
                "type": type(exc).__name__,
                "message": str(exc),
                "location": location,
                "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            },
        )

    def _wants(self, selected: bool) -> bool:
        return self.enabled and selected

    def _log_file(self) -> Path:
        if self._path is None:
            self.paths.logs_dir.mkdir(parents=True, exist_ok=True)
            path = self.paths.logs_dir / f"promptline_session_{self._session_id}.md"
            if not path.exists():
                path.write_text(
                    "# promptline Session Log\n\n"
                    f"- Session: {self._session_id}\n"
                    f"- Started: {self._started_at.isoformat()}\n\n"
                    "---\n\n",
                    encoding="utf-8",
                )
            self._path = path
        return self._path

    def _append(self, kind: str, source: str, event: str, content: Any) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        entry = f"## {timestamp} · {kind}/{source} · {event}\n{_format_content(content)}\n\n"
        try:
            with self._log_file().open("a", encoding="utf-8") as handle:
                handle.write(entry)
        except OSError:
            # An unwritable log directory turns logging off for the session.
            self.close()


_ACTIVE_LOGGER: SessionLogger | None = None


def set_active_logger(logger: SessionLogger | None) -> None:
    global _ACTIVE_LOGGER
    _ACTIVE_LOGGER = logger


def log_input(source: str, line: str) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_input(source, line)


def log_exception(source: str, exc: BaseException) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_exception(source, exc)


def _log(level: str, source: str, event: str, content: Any | None) -> None:
    if _ACTIVE_LOGGER is not None:
        _ACTIVE_LOGGER.log_level(source, level, event, content)


def log_warn(source: str, event: str, content: Any | None = None) -> None:
    _log("warn", source, event, content)


def log_info(source: str, event: str, content: Any | None = None) -> None:
    _log("info", source, event, content)


def log_debug(source: str, event: str, content: Any | None = None) -> None:
    _log("debug", source, event, content)
