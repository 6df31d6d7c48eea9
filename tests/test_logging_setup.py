import json
import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from scribe.logging_setup import _JsonLogFormatter, configure_optional_json_logging, log


def _record(name: str, message: str) -> logging.LogRecord:
    return logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None)


class JsonLogFormatterTests(unittest.TestCase):
    def test_chat_prefix_becomes_field(self):
        payload = json.loads(_JsonLogFormatter().format(_record("scribe", "[-100] User: !stats")))
        self.assertEqual(payload["chat"], "-100")
        self.assertEqual(payload["message"], "User: !stats")
        self.assertEqual(payload["operation"], "user_message")

    def test_operation_follows_component_logger(self):
        payload = json.loads(_JsonLogFormatter().format(_record("scribe.aggregator", "Started zindex5")))
        self.assertIsNone(payload["chat"])
        self.assertEqual(payload["operation"], "external_search")

        payload = json.loads(_JsonLogFormatter().format(_record("scribe", "Flushed 3 message(s)")))
        self.assertEqual(payload["operation"], "log_flush")


class ConfigureJsonLoggingTests(unittest.TestCase):
    def test_disabled_by_default(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(configure_optional_json_logging("."))

    def test_adds_single_file_handler(self):
        with tempfile.TemporaryDirectory() as tmp:
            env = {"JSON_LOG_ENABLED": "1", "JSON_LOG_PATH": "out/scribe.jsonl"}
            before = list(log.handlers)
            try:
                with mock.patch.dict(os.environ, env, clear=True):
                    path = configure_optional_json_logging(tmp)
                    again = configure_optional_json_logging(tmp)
                self.assertEqual(path, (Path(tmp) / "out" / "scribe.jsonl").resolve())
                self.assertEqual(again, path)
                self.assertEqual(len(log.handlers), len(before) + 1)
                self.assertTrue(path.exists())
            finally:
                for handler in list(log.handlers):
                    if handler not in before:
                        log.removeHandler(handler)
                        handler.close()


if __name__ == "__main__":
    unittest.main()
