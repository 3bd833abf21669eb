"""Tests for structured logging behavior."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
import unittest

import structlog

from chatmux.logging_utils import configure_logging


def _stream_handlers() -> list[logging.Handler]:
    return [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]


def _record(name: str, msg: str = "ok", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class ConfigureLoggingTests(unittest.TestCase):
    """Validate configure_logging() handler setup behavior."""

    def setUp(self) -> None:
        # Preserve root logger state so tests do not pollute each other.
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

    def test_structured_output_is_json_with_extra_fields(self) -> None:
        configure_logging({"level": "DEBUG", "structured": True, "log_to_file": False})
        handler = _stream_handlers()[0]
        self.assertIsInstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
        record = _record(
            "chatmux.engine",
            "engine.turn.persisted",
            event="engine.turn.persisted",
            conversation_id="abc",
        )
        data = json.loads(handler.format(record))
        self.assertEqual(data["event"], "engine.turn.persisted")
        self.assertEqual(data["conversation_id"], "abc")
        self.assertEqual(data["logger"], "chatmux.engine")
        self.assertIn("timestamp", data)

    def test_plain_formatter_when_not_structured(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        handler = _stream_handlers()[0]
        self.assertNotIsInstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

    def test_sets_root_level_and_quiets_libraries(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        self.assertEqual(logging.getLogger().level, logging.DEBUG)
        for name in ("httpx", "httpcore", "ollama", "aiosqlite"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_stderr_handler_only_passes_app_records(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        handler = _stream_handlers()[0]
        self.assertGreaterEqual(handler.level, logging.WARNING)
        self.assertTrue(handler.filter(_record("chatmux.app")))
        self.assertFalse(handler.filter(_record("httpx")))

    def test_file_handler_created(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "nested" / "app.log"
            configure_logging(
                {
                    "level": "DEBUG",
                    "structured": False,
                    "log_to_file": True,
                    "log_file_path": str(log_path),
                }
            )
            file_handlers = [
                h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
            self.assertTrue(log_path.exists())
            for handler in file_handlers:
                handler.close()


if __name__ == "__main__":
    unittest.main()
