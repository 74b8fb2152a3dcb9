from __future__ import annotations

import datetime
from pathlib import Path
from typing import Iterable, Optional

DEFAULT_MAX_HISTORY_SIZE = 1000


class HistoryStore:
    """Bounded, optionally de-duplicated list of submitted lines (oldest first).

    Files use the prompt_toolkit ``FileHistory`` layout: a ``# timestamp``
    comment, then every line of the entry prefixed with ``+``.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_HISTORY_SIZE,
        *,
        unique: bool = True,
        path: Optional[Path] = None,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._entries: list[str] = []
        self.max_size = max_size
        self.unique = unique
        self.path = path

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def set_max_size(self, max_size: int) -> None:
        """Change the bound; stored entries are trimmed on the next insertion."""
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size

    def entries(self) -> list[str]:
        return list(self._entries)

    def size(self) -> int:
        return len(self._entries)

    def add(self, line: str) -> bool:
        """Insert ``line`` as most recent. Blank lines are ignored."""
        if not line or not line.strip():
            return False
        if self.unique:
            try:
                self._entries.remove(line)
            except ValueError:
                pass
        self._entries.append(line)
        overflow = len(self._entries) - self.max_size
        if overflow > 0:
            del self._entries[:overflow]
        return True

    def clear(self) -> None:
        self._entries.clear()

    def replace(self, lines: Iterable[str]) -> None:
        """Drop current entries and re-insert ``lines`` under the active policy."""
        self._entries.clear()
        for line in lines:
            self.add(line)

    def load(self, path: Optional[Path] = None) -> bool:
        """Replace in-memory entries with those stored in ``path``."""
        target = path or self.path
        if target is None:
            return False
        try:
            text = Path(target).read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            return False
        self.replace(parse_history_text(text))
        return True

    def save(self, path: Optional[Path] = None) -> bool:
        """Write every entry to ``path``, overwriting its previous content."""
        target = path or self.path
        if target is None:
            return False
        try:
            Path(target).write_bytes(format_history_text(self._entries).encode("utf-8"))
        except OSError:
            return False
        return True

    def sync(self, path: Optional[Path] = None) -> bool:
        """Flush the current state to disk right away (write-through)."""
        return self.save(path)


def format_history_text(entries: Iterable[str]) -> str:
    stamp = datetime.datetime.now().isoformat(sep=" ")
    chunks = []
    for entry in entries:
        body = "".join(f"+{line}\n" for line in entry.split("\n"))
        chunks.append(f"\n# {stamp}\n{body}")
    return "".join(chunks)


def parse_history_text(text: str) -> list[str]:
    """Parse ``FileHistory`` text, or a plain file holding one entry per line.

    Only ``\\n`` separates lines; any other control character belongs to the
    entry. A file is in ``FileHistory`` layout when it has ``# `` headers and
    every other non-blank line carries the ``+`` marker.
    """
    raw_lines = text.split("\n")
    if not _is_file_history(raw_lines):
        return [line.rstrip("\r") for line in raw_lines if line.strip()]

    entries: list[str] = []
    current: list[str] = []
    for line in raw_lines:
        if line.startswith("+"):
            current.append(line[1:])
            continue
        if current:
            entries.append("\n".join(current))
            current = []
    if current:
        entries.append("\n".join(current))
    return entries


def _is_file_history(lines: list[str]) -> bool:
    has_header = False
    for line in lines:
        if line.startswith("# "):
            has_header = True
        elif line and not line.startswith("+"):
            return False
    return has_header
