"""Interactive command-line input: terminal probing, line sessions and the REPL."""

from .app import PromptlineCLI, main
from .engine import CompletionContext, LineEngine, PromptToolkitEngine
from .session import LineEditorSession
from .terminal import TerminalCapabilities, TerminalCapabilityProbe

__all__ = [
    "CompletionContext",
    "LineEditorSession",
    "LineEngine",
    "PromptToolkitEngine",
    "PromptlineCLI",
    "TerminalCapabilities",
    "TerminalCapabilityProbe",
    "main",
]
