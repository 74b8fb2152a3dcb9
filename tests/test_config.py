import json
import os
import tempfile
import unittest
from io import StringIO
from pathlib import Path
from unittest import mock

from rich.console import Console

from promptline.config import ConfigManager, PromptlinePaths
from promptline.config.manager import DEFAULT_KEY_BINDINGS, DEFAULT_WORD_BREAK_CHARACTERS


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._home = tempfile.TemporaryDirectory()
        self._root = tempfile.TemporaryDirectory()
        self._env = mock.patch.dict(os.environ, {"HOME": self._home.name})
        self._env.start()
        self.home = Path(self._home.name)
        self.paths = PromptlinePaths(Path(self._root.name))
        self.output = StringIO()
        self.console = Console(file=self.output, force_terminal=False, color_system=None, width=200)
        self.manager = ConfigManager(self.paths, console=self.console)

    def tearDown(self) -> None:
        self._env.stop()
        self._home.cleanup()
        self._root.cleanup()

    def _write(self, path: Path, data) -> None:  # type: ignore[no-untyped-def]
        path.parent.mkdir(parents=True, exist_ok=True)
        text = data if isinstance(data, str) else json.dumps(data)
        path.write_text(text, encoding="utf-8")

    def test_defaults_without_files(self) -> None:
        settings = self.manager.load_settings()
        self.assertEqual(settings.max_history_size, 1000)
        self.assertTrue(settings.unique_history)
        self.assertEqual(settings.word_break_characters, DEFAULT_WORD_BREAK_CHARACTERS)
        self.assertEqual(settings.max_hint_rows, 3)
        self.assertEqual(settings.hint_delay_ms, 200)
        self.assertFalse(settings.double_tab_completion)
        self.assertIsNone(settings.color)
        self.assertEqual(settings.key_bindings, DEFAULT_KEY_BINDINGS)
        self.assertEqual(settings.history_file, self.paths.history_file)
        self.assertEqual(self.output.getvalue(), "")

    def test_workspace_overrides_global(self) -> None:
        self._write(self.paths.global_config_file, {"max_history_size": 50, "max_hint_rows": 5})
        self._write(self.paths.config_file, {"max_history_size": 20})
        settings = self.manager.load_settings()
        self.assertEqual(settings.max_history_size, 20)
        self.assertEqual(settings.max_hint_rows, 5)

    def test_key_bindings_merge_with_defaults(self) -> None:
        self._write(self.paths.config_file, {"key_bindings": {"clear_screen": "c-k"}})
        settings = self.manager.load_settings()
        self.assertEqual(settings.key_bindings["clear_screen"], "c-k")
        self.assertEqual(settings.key_bindings["kill_to_beginning_of_word"], "c-w")

    def test_relative_history_file_resolves_against_root(self) -> None:
        self._write(self.paths.config_file, {"history_file": "hist/lines"})
        settings = self.manager.load_settings()
        self.assertEqual(settings.history_file, self.paths.root / "hist" / "lines")

    def test_boolean_strings_are_accepted(self) -> None:
        self._write(
            self.paths.config_file,
            {"unique_history": "no", "double_tab_completion": "yes", "color": "off"},
        )
        settings = self.manager.load_settings()
        self.assertFalse(settings.unique_history)
        self.assertTrue(settings.double_tab_completion)
        self.assertFalse(settings.color)

    def test_invalid_values_fall_back_with_warning(self) -> None:
        self._write(
            self.paths.config_file,
            {"max_history_size": 0, "hint_delay_ms": "soon", "unique_history": "maybe"},
        )
        settings = self.manager.load_settings()
        self.assertEqual(settings.max_history_size, 1000)
        self.assertEqual(settings.hint_delay_ms, 200)
        self.assertTrue(settings.unique_history)
        text = self.output.getvalue()
        self.assertIn("max_history_size", text)
        self.assertIn("hint_delay_ms", text)
        self.assertIn("unique_history", text)

    def test_malformed_json_uses_defaults(self) -> None:
        self._write(self.paths.config_file, "{not json")
        settings = self.manager.load_settings()
        self.assertEqual(settings.max_history_size, 1000)
        self.assertIn("Failed to parse JSON config", self.output.getvalue())

    def test_non_object_json_is_ignored(self) -> None:
        self._write(self.paths.config_file, "[1, 2]")
        self.manager.load_settings()
        self.assertIn("expected a JSON object", self.output.getvalue())

    def test_paths_layout(self) -> None:
        root = self.paths.root
        self.assertEqual(self.paths.config_file, root / ".promptline" / "promptline.json")
        self.assertEqual(self.paths.history_file, root / ".promptline" / "history")
        self.assertEqual(self.paths.logs_dir, root / ".promptline" / "logs")
        self.assertEqual(self.paths.global_config_file, self.home / ".promptline" / "promptline.json")


if __name__ == "__main__":
    unittest.main()
