"""Tests for structured logging behavior."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
import unittest

import structlog

from termai.logging_utils import NOISY_LOGGERS, configure_logging


class ConfigureLoggingTests(unittest.TestCase):
    """Validate configure_logging() handler setup behavior."""

    def setUp(self) -> None:
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._original_handlers:
                handler.close()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)
        structlog.reset_defaults()

    def _stream_handlers(self) -> list[logging.Handler]:
        return [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_stderr_handler_only_shows_warnings(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        handlers = self._stream_handlers()
        self.assertEqual(len(handlers), 1)
        self.assertEqual(handlers[0].level, logging.WARNING)
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    def test_structured_uses_processor_formatter(self) -> None:
        configure_logging({"level": "INFO", "structured": True})
        formatter = self._stream_handlers()[0].formatter
        self.assertIsInstance(formatter, structlog.stdlib.ProcessorFormatter)

    def test_plain_formatter_when_not_structured(self) -> None:
        configure_logging({"level": "INFO", "structured": False})
        formatter = self._stream_handlers()[0].formatter
        self.assertNotIsInstance(formatter, structlog.stdlib.ProcessorFormatter)

    def test_noisy_loggers_set_to_warning(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        for name in NOISY_LOGGERS:
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_stderr_handler_filters_to_app_records(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        handler = self._stream_handlers()[0]
        ours = logging.LogRecord("termai.session", logging.WARNING, "", 0, "ok", (), None)
        theirs = logging.LogRecord("httpx", logging.WARNING, "", 0, "noise", (), None)
        self.assertTrue(handler.filter(ours))
        self.assertFalse(handler.filter(theirs))

    def test_file_log_lines_are_json_with_extra_fields(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "logs" / "termai.log"
            configure_logging(
                {
                    "level": "DEBUG",
                    "structured": True,
                    "log_to_file": True,
                    "log_file_path": str(log_path),
                }
            )
            logging.getLogger("termai.test").info(
                "session.started",
                extra={"event": "session.started", "profile": "local"},
            )
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = log_path.read_text(encoding="utf-8").strip().splitlines()
            data = json.loads(lines[-1])
            self.assertEqual(data["event"], "session.started")
            self.assertEqual(data["profile"], "local")
            self.assertEqual(data["logger"], "termai.test")
            self.assertEqual(data["level"], "info")

            for handler in list(logging.getLogger().handlers):
                if isinstance(handler, logging.FileHandler):
                    handler.close()
                    logging.getLogger().removeHandler(handler)


if __name__ == "__main__":
    unittest.main()
