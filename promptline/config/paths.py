from dataclasses import dataclass
from pathlib import Path


@dataclass
class PromptlinePaths:
    """Centralizes filesystem paths for a promptline workspace."""

    root: Path

    @property
    def workspace_dir(self) -> Path:
        return self.root / ".promptline"

    @property
    def config_file(self) -> Path:
        return self.workspace_dir / "promptline.json"

    @property
    def history_file(self) -> Path:
        return self.workspace_dir / "history"

    @property
    def logs_dir(self) -> Path:
        return self.workspace_dir / "logs"

    @property
    def global_dir(self) -> Path:
        return Path.home() / ".promptline"

    @property
    def global_config_file(self) -> Path:
        return self.global_dir / "promptline.json"
