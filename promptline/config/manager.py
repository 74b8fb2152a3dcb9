from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console

from .paths import PromptlinePaths

DEFAULT_WORD_BREAK_CHARACTERS = " \t\n\r\v\f!\"#$%&'()*+,-./:;<=>?@[\\]^`{|}~"
DEFAULT_KEY_BINDINGS: Dict[str, str] = {
    "clear_screen": "c-l",
    "kill_to_beginning_of_word": "c-w",
}

DEFAULT_SESSION_CONFIG: Dict[str, Any] = {
    "max_history_size": 1000,
    "unique_history": True,
    "word_break_characters": DEFAULT_WORD_BREAK_CHARACTERS,
    "max_hint_rows": 3,
    "hint_delay_ms": 200,
    "double_tab_completion": False,
    "complete_on_empty": False,
    "beep_on_ambiguous_completion": False,
    "color": None,
    "key_bindings": dict(DEFAULT_KEY_BINDINGS),
    "history_file": None,
    "debug": None,
}

_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off"}


@dataclass
class SessionSettings:
    max_history_size: int = 1000
    unique_history: bool = True
    word_break_characters: str = DEFAULT_WORD_BREAK_CHARACTERS
    max_hint_rows: int = 3
    hint_delay_ms: int = 200
    double_tab_completion: bool = False
    complete_on_empty: bool = False
    beep_on_ambiguous_completion: bool = False
    color: Optional[bool] = None
    key_bindings: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_KEY_BINDINGS))
    history_file: Optional[Path] = None
    debug: Any = None


class ConfigManager:
    """Reads promptline.json (global, then workspace) into SessionSettings."""

    def __init__(self, paths: PromptlinePaths, console: Optional[Console] = None) -> None:
        self.paths = paths
        self.console = console or Console()

    def load_config(self) -> Dict[str, Any]:
        """Defaults, overridden by the global file, overridden by the workspace file."""
        merged = self._merge_dicts(DEFAULT_SESSION_CONFIG, self._read_json(self.paths.global_config_file))
        return self._merge_dicts(merged, self._read_json(self.paths.config_file))

    def load_settings(self) -> SessionSettings:
        data = self.load_config()
        defaults = SessionSettings()
        history_file = data.get("history_file")
        if isinstance(history_file, str) and history_file.strip():
            resolved = Path(history_file.strip()).expanduser()
            if not resolved.is_absolute():
                resolved = self.paths.root / resolved
        else:
            resolved = self.paths.history_file
        return SessionSettings(
            max_history_size=self._positive_int(data, "max_history_size", defaults.max_history_size),
            unique_history=self._bool(data, "unique_history", defaults.unique_history),
            word_break_characters=self._string(
                data, "word_break_characters", defaults.word_break_characters
            ),
            max_hint_rows=self._positive_int(data, "max_hint_rows", defaults.max_hint_rows),
            hint_delay_ms=self._non_negative_int(data, "hint_delay_ms", defaults.hint_delay_ms),
            double_tab_completion=self._bool(
                data, "double_tab_completion", defaults.double_tab_completion
            ),
            complete_on_empty=self._bool(data, "complete_on_empty", defaults.complete_on_empty),
            beep_on_ambiguous_completion=self._bool(
                data, "beep_on_ambiguous_completion", defaults.beep_on_ambiguous_completion
            ),
            color=self._optional_bool(data.get("color")),
            key_bindings=self._key_bindings(data.get("key_bindings")),
            history_file=resolved,
            debug=data.get("debug"),
        )

    def _merge_dicts(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        if not override:
            return dict(base)
        merged: Dict[str, Any] = dict(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = self._merge_dicts(merged[key], value)  # type: ignore[arg-type]
            else:
                merged[key] = value
        return merged

    def _read_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            self.console.print(
                f"[red]Failed to parse JSON config at {path}. Using defaults.[/red]"
            )
            return {}
        except OSError:
            self.console.print(f"[red]Failed to read config at {path}. Using defaults.[/red]")
            return {}
        if not isinstance(data, dict):
            self.console.print(
                f"[yellow]Ignoring {path}: expected a JSON object.[/yellow]"
            )
            return {}
        return data

    def _warn_invalid(self, key: str, value: Any) -> None:
        self.console.print(
            f"[yellow]Invalid value for '{key}': {value!r}. Using default.[/yellow]"
        )

    def _bool(self, data: Dict[str, Any], key: str, default: bool) -> bool:
        value = data.get(key)
        if value is None:
            return default
        parsed = self._optional_bool(value)
        if parsed is None:
            self._warn_invalid(key, value)
            return default
        return parsed

    def _optional_bool(self, value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            cleaned = value.strip().lower()
            if cleaned in _TRUE_STRINGS:
                return True
            if cleaned in _FALSE_STRINGS:
                return False
        return None

    def _positive_int(self, data: Dict[str, Any], key: str, default: int) -> int:
        value = self._int(data, key, default)
        if value <= 0:
            self._warn_invalid(key, data.get(key))
            return default
        return value

    def _non_negative_int(self, data: Dict[str, Any], key: str, default: int) -> int:
        value = self._int(data, key, default)
        if value < 0:
            self._warn_invalid(key, data.get(key))
            return default
        return value

    def _int(self, data: Dict[str, Any], key: str, default: int) -> int:
        value = data.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            self._warn_invalid(key, value)
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            self._warn_invalid(key, value)
            return default

    def _string(self, data: Dict[str, Any], key: str, default: str) -> str:
        value = data.get(key)
        if value is None:
            return default
        if not isinstance(value, str) or not value:
            self._warn_invalid(key, value)
            return default
        return value

    def _key_bindings(self, raw: Any) -> Dict[str, str]:
        bindings = dict(DEFAULT_KEY_BINDINGS)
        if raw is None:
            return bindings
        if not isinstance(raw, dict):
            self._warn_invalid("key_bindings", raw)
            return bindings
        for action, trigger in raw.items():
            if isinstance(action, str) and isinstance(trigger, str) and trigger.strip():
                bindings[action] = trigger.strip()
            else:
                self._warn_invalid(f"key_bindings.{action}", trigger)
        return bindings
