"""Configuration package."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .manager import ConfigManager, SessionSettings
    from .paths import PromptlinePaths

__all__ = ["ConfigManager", "SessionSettings", "PromptlinePaths"]


def __getattr__(name: str) -> Any:
    if name in {"ConfigManager", "SessionSettings"}:
        from .manager import ConfigManager, SessionSettings

        return {"ConfigManager": ConfigManager, "SessionSettings": SessionSettings}[name]
    if name == "PromptlinePaths":
        from .paths import PromptlinePaths

        return PromptlinePaths
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
