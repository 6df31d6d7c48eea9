import os
import unittest
from unittest import mock

from config import load_config


class LoadConfigTests(unittest.TestCase):
    def _load(self, **env):
        with mock.patch.dict(os.environ, env, clear=True):
            return load_config()

    def test_defaults(self):
        cfg = self._load()
        self.assertEqual(cfg.external_search_command, ["./zindex5"])
        self.assertEqual(cfg.external_search_max_lines, 500)
        self.assertEqual(cfg.external_search_timeout_sec, 600)
        self.assertEqual(cfg.log_flush_interval_sec, 300)
        self.assertEqual(cfg.telegram_allowed_users, [])

    def test_command_is_split_like_a_shell(self):
        cfg = self._load(EXTERNAL_SEARCH_COMMAND="./zindex5 --index 'big one'")
        self.assertEqual(cfg.external_search_command, ["./zindex5", "--index", "big one"])

    def test_user_lists_skip_placeholders_and_comments(self):
        cfg = self._load(
            TELEGRAM_ALLOWED_USERS="12, abc, 34 # admins",
            EXTERNAL_SEARCH_BLOCKED_USERS="99",
        )
        self.assertEqual(cfg.telegram_allowed_users, ["12", "34"])
        self.assertEqual(cfg.external_search_blocked_users, ["99"])

    def test_numeric_values_are_clamped_or_defaulted(self):
        cfg = self._load(
            LOG_FLUSH_INTERVAL_SEC="1",
            EXTERNAL_SEARCH_TIMEOUT_SEC="-3",
            EXTERNAL_SEARCH_MAX_LINES="not a number",
            HTTP_TIMEOUT_SEC="0",
        )
        self.assertEqual(cfg.log_flush_interval_sec, 5)
        self.assertEqual(cfg.external_search_timeout_sec, 0)
        self.assertEqual(cfg.external_search_max_lines, 500)
        self.assertEqual(cfg.http_timeout_sec, 5)

    def test_bot_username_and_base_url_are_normalized(self):
        cfg = self._load(BOT_USERNAME="@scribe_bot", COMMAND_BASE_URL="https://api.example/")
        self.assertEqual(cfg.bot_username, "scribe_bot")
        self.assertEqual(cfg.command_base_url, "https://api.example")


if __name__ == "__main__":
    unittest.main()
