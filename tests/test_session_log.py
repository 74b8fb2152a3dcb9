import tempfile
import unittest
from pathlib import Path

from promptline.config.paths import PromptlinePaths
from promptline.core import session_log
from promptline.core.session_log import SessionLogger, resolve_debug_config


class SessionLoggerTests(unittest.TestCase):
    def tearDown(self) -> None:
        session_log.set_active_logger(None)

    def _log_files(self, paths: PromptlinePaths) -> list[Path]:
        return list(paths.logs_dir.glob("promptline_session_*.md"))

    def test_logger_disabled_creates_no_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            paths = PromptlinePaths(Path(tmp))
            logger = SessionLogger(paths, None)
            logger.log_input("readline", "hello")
            self.assertFalse(paths.logs_dir.exists())

    def test_log_input_writes_markdown(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            paths = PromptlinePaths(Path(tmp))
            logger = SessionLogger(paths, "session")
            logger.log_input("readline", "hello")
            logger.close()
            files = self._log_files(paths)
            self.assertEqual(len(files), 1)
            text = files[0].read_text(encoding="utf-8")
            self.assertIn("# promptline Session Log", text)
            self.assertIn("input.line", text)
            self.assertIn("hello", text)

    def test_entries_are_appended_in_arrival_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            paths = PromptlinePaths(Path(tmp))
            logger = SessionLogger(paths, "session")
            logger.log_input("readline", "first line")
            logger.log_input("readline", "second line")
            text = self._log_files(paths)[0].read_text(encoding="utf-8")
            self.assertLess(text.index("first line"), text.index("second line"))

    def test_levels_are_filtered(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            paths = PromptlinePaths(Path(tmp))
            logger = SessionLogger(paths, "warn")
            logger.log_level("readline", "info", "info.event", "skip")
            logger.log_level("readline", "warn", "warn.event", {"path": "x"})
            logger.log_level("readline", "error", "error.event")
            logger.log_input("readline", "not logged")
            text = self._log_files(paths)[0].read_text(encoding="utf-8")
            self.assertNotIn("info.event", text)
            self.assertIn("warn.event", text)
            self.assertIn("error.event", text)
            self.assertIn('"path": "x"', text)
            self.assertNotIn("not logged", text)

    def test_log_exception_records_traceback(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            paths = PromptlinePaths(Path(tmp))
            logger = SessionLogger(paths, "error")
            try:
                raise RuntimeError("boom")
            except RuntimeError as exc:
                logger.log_exception("cli", exc)
            text = self._log_files(paths)[0].read_text(encoding="utf-8")
            self.assertIn("RuntimeError", text)
            self.assertIn("boom", text)
            self.assertIn("Traceback", text)

    def test_module_helpers_use_active_logger(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            paths = PromptlinePaths(Path(tmp))
            logger = SessionLogger(paths, "all")
            session_log.set_active_logger(logger)
            session_log.log_input("readline", "typed")
            session_log.log_debug("readline", "debug.event")
            text = self._log_files(paths)[0].read_text(encoding="utf-8")
            self.assertIn("typed", text)
            self.assertIn("debug.event", text)

    def test_module_helpers_without_logger_do_nothing(self) -> None:
        session_log.set_active_logger(None)
        session_log.log_warn("readline", "ignored")
        session_log.log_exception("readline", ValueError("ignored"))

    def test_write_failure_disables_logger(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "blocker"
            blocker.write_text("", encoding="utf-8")
            logger = SessionLogger(PromptlinePaths(blocker), "all")
            logger.log_input("readline", "event")
            self.assertFalse(logger.enabled)


class DebugConfigTests(unittest.TestCase):
    def test_disabled_values(self) -> None:
        for raw in (None, False, "", "off", "none", [], 3):
            selection = resolve_debug_config(raw)
            self.assertEqual(selection.enabled_types, frozenset(), raw)
            self.assertEqual(selection.enabled_levels, frozenset(), raw)

    def test_all_enables_everything(self) -> None:
        for raw in (True, "all", "yes", ["all"]):
            selection = resolve_debug_config(raw)
            self.assertIn("session", selection.enabled_types)
            self.assertEqual(selection.enabled_levels, {"error", "warn", "info", "debug"})

    def test_level_includes_more_severe_levels(self) -> None:
        selection = resolve_debug_config("info")
        self.assertEqual(selection.enabled_levels, {"error", "warn", "info"})
        self.assertEqual(selection.enabled_types, frozenset())

    def test_comma_separated_string(self) -> None:
        selection = resolve_debug_config("session, warn")
        self.assertEqual(selection.enabled_types, {"session"})
        self.assertEqual(selection.enabled_levels, {"error", "warn"})


if __name__ == "__main__":
    unittest.main()
