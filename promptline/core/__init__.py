"""Core data managers and helpers."""

from .history import HistoryStore
from .session_log import SessionLogger

__all__ = [
    "HistoryStore",
    "SessionLogger",
]
