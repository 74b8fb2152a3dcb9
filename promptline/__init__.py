"""promptline package initialization."""

from importlib.metadata import PackageNotFoundError, version

__all__ = [
    "cli",
    "config",
    "core",
]

# Single source of truth comes from package metadata defined in pyproject.toml
try:
    __version__ = version("promptline")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.0.0"
