from __future__ import annotations

import json
import sys
import tempfile
import textwrap
import unittest
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from telegram.constants import ParseMode
from telegram.error import BadRequest

from config import Config
from providers import WebDocument
from scribe.bot import ScribeBot
from scribe.bot.commands import parse_days_back
from scribe.bot.remote import parse_web_args

BOT_ID = 999


def _user(user_id: int = 7, username: str | None = "alice"):
    return SimpleNamespace(id=user_id, username=username, first_name=username or "Anon", last_name=None)


class FakeMessage:
    _next_id = 1

    def __init__(self, text: str, user, reply_to: "FakeMessage | None" = None):
        self.text = text
        self.from_user = user
        self.reply_to_message = reply_to
        self.date = datetime.now(timezone.utc)
        self.message_id = FakeMessage._next_id
        FakeMessage._next_id += 1
        self.replies: list[str] = []
        self.documents: list[dict] = []

    async def reply_text(self, text, parse_mode=None):
        self.replies.append(text)
        return SimpleNamespace(text=text)

    async def reply_document(self, document=None, filename=None, caption=None, parse_mode=None):
        self.documents.append({"document": document, "filename": filename, "caption": caption})
        return SimpleNamespace(caption=caption)


class ParsingHelperTests(unittest.TestCase):
    def test_parse_days_back(self):
        self.assertEqual(parse_days_back(""), 0)
        self.assertEqual(parse_days_back("-d 3"), 3)
        self.assertEqual(parse_days_back("-d"), 0)
        self.assertEqual(parse_days_back("-d soon"), 0)
        self.assertEqual(parse_days_back("-d -4"), 0)
        self.assertEqual(parse_days_back("-d 9999"), 365)

    def test_parse_web_args(self):
        self.assertEqual(parse_web_args("https://a.example"), ("https://a.example", False, False))
        self.assertEqual(parse_web_args("+pdf https://a.example"), ("https://a.example", True, False))
        self.assertEqual(parse_web_args("+inline https://a.example"), ("https://a.example", False, True))
        self.assertEqual(parse_web_args(""), ("", False, False))

    def test_chunk_message_splits_on_newlines(self):
        chunks = ScribeBot._chunk_message("a" * 10 + "\n" + "b" * 10, max_len=12)
        self.assertEqual(chunks, ["a" * 10, "b" * 10])


class ScribeBotTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config = Config(
            log_dir=str(Path(self._tmp.name) / "logs"),
            external_search_results_path=str(Path(self._tmp.name) / "results.txt"),
        )
        self.bot = ScribeBot(self.config)
        self.chat = SimpleNamespace(id=-100, title="general", username=None, first_name=None)
        self.context = SimpleNamespace(bot=SimpleNamespace(id=BOT_ID, username="scribe_bot"))

    def tearDown(self):
        self._tmp.cleanup()

    async def _send(self, text: str, user=None, reply_to: FakeMessage | None = None) -> FakeMessage:
        user = user or _user()
        message = FakeMessage(text, user, reply_to=reply_to)
        update = SimpleNamespace(message=message, effective_chat=self.chat, effective_user=user)
        await self.bot.handle_message(update, self.context)
        return message

    async def _logged(self):
        return await self.bot.store.read_all(self.bot.partition_for(self.chat))

    async def test_plain_messages_are_logged_without_reply(self):
        first = await self._send("hello there")
        await self._send("general chatter", user=_user(8, "bob"))

        records = await self._logged()
        self.assertEqual([r.text for r in records], ["hello there", "general chatter"])
        self.assertEqual(records[1].sender_username, "bob")
        self.assertEqual(first.replies, [])

    async def test_search_replies_with_matches(self):
        await self._send("Foo fighters tonight")
        await self._send("nothing relevant")
        message = await self._send("!search foo")

        self.assertEqual(len(message.replies), 1)
        reply = message.replies[0]
        self.assertIn('Search results for "foo"', reply)
        self.assertIn("Foo fighters tonight", reply)
        self.assertNotIn("nothing relevant", reply)

    async def test_search_without_keyword_replies_usage(self):
        message = await self._send("!search   ")
        self.assertEqual(message.replies, ["Please provide a search keyword."])

    async def test_bot_mention_is_stripped_from_arguments(self):
        await self._send("hello world")
        message = await self._send("!search@scribe_bot hello")
        self.assertIn('Search results for "hello"', message.replies[0])

    async def test_stats_counts_logged_messages(self):
        await self._send("hi all")
        message = await self._send("!stats")
        self.assertIn("Total messages: <code>2</code>", message.replies[0])

    async def test_disallowed_user_is_logged_but_ignored(self):
        self.config.telegram_allowed_users = ["1"]
        message = await self._send("!stats")
        self.assertEqual(message.replies, [])
        self.assertEqual(len(await self._logged()), 1)

    async def test_reply_to_own_command_chains(self):
        bot_message = FakeMessage("!q the answer is 4", _user(BOT_ID, "scribe_bot"))
        with mock.patch.object(self.bot.endpoints, "ask", new=mock.AsyncMock(return_value="five")) as ask:
            message = await self._send("and plus one?", reply_to=bot_message)

        ask.assert_awaited_once_with("ask", "and plus one?", "")
        self.assertEqual(message.replies, ["!q five"])

    async def test_unexpected_failure_replies_with_apology(self):
        failing = mock.AsyncMock(side_effect=RuntimeError("boom"))
        with mock.patch.object(self.bot.queries, "statistics", new=failing):
            with self.assertLogs("scribe", level="ERROR"):
                message = await self._send("!stats")
        self.assertEqual(
            message.replies, ["Sorry, I encountered an error while processing your request."]
        )

    async def test_summary_without_credentials_apologizes(self):
        with self.assertLogs("scribe", level="ERROR"):
            message = await self._send("!cai")
        self.assertEqual(message.replies, ["Sorry, I couldn't summarize the chat right now."])

    async def test_summary_for_empty_day(self):
        message = await self._send("!cai -d 2")
        self.assertEqual(len(message.replies), 1)
        self.assertTrue(message.replies[0].startswith("No messages logged for "))

    async def test_external_search_blocked_user(self):
        self.config.external_search_blocked_users = ["7"]
        message = await self._send("/z needle")
        self.assertEqual(message.replies, ["Nah."])
        self.assertEqual(message.documents, [])

    async def test_external_search_without_term_replies_usage(self):
        message = await self._send("/z")
        self.assertEqual(message.replies, ["Usage: /z &lt;search-term&gt;"])

    async def test_external_search_replies_with_result_file(self):
        script = textwrap.dedent(
            """
            import sys
            print('{"preview":"%s one"}' % sys.argv[1])
            print('{"preview":"%s two"}' % sys.argv[1])
            print('{"preview":"%s one"}' % sys.argv[1])
            """
        )
        self.config.external_search_command = [sys.executable, "-c", script]
        message = await self._send("/z needle")

        self.assertEqual(message.replies, [])
        self.assertEqual(len(message.documents), 1)
        document = message.documents[0]
        self.assertEqual(document["filename"], "results.txt")
        self.assertEqual(document["document"], b"needle one\nneedle two")
        self.assertTrue(document["caption"].startswith('2 Search results for "needle"'))
        written = Path(self.config.external_search_results_path).read_text(encoding="utf-8")
        self.assertEqual(written, "needle one\nneedle two")

    async def test_external_search_start_failure_is_reported(self):
        self.config.external_search_command = ["/nonexistent/zindex-missing"]
        with self.assertLogs("scribe", level="ERROR"):
            message = await self._send("/z needle")
        self.assertTrue(message.replies[0].startswith("Error running search:"))

    async def test_web_fetch_replies_with_markdown_document(self):
        doc = WebDocument(name="a-example", markdown="# Title")
        with mock.patch.object(self.bot.endpoints, "fetch_markdown", new=mock.AsyncMock(return_value=doc)):
            message = await self._send("!w https://a.example")

        self.assertEqual(len(message.documents), 1)
        self.assertEqual(message.documents[0]["filename"], "a-example.md")
        self.assertEqual(message.documents[0]["document"], b"# Title")
        self.assertIn("https://a.example", message.documents[0]["caption"])

    async def test_web_inline_replies_with_text(self):
        doc = WebDocument(name="a-example", markdown="short <page>")
        with mock.patch.object(self.bot.endpoints, "fetch_markdown", new=mock.AsyncMock(return_value=doc)):
            message = await self._send("!w +inline https://a.example")

        self.assertEqual(message.documents, [])
        self.assertEqual(message.replies, ["Content for https://a.example:\n\nshort &lt;page&gt;"])

    async def test_rejected_markup_is_resent_as_readable_plain_text(self):
        sent: list[tuple[str, str | None]] = []

        async def send(text, parse_mode=None):
            sent.append((text, parse_mode))
            if parse_mode:
                raise BadRequest("Can't parse entities")
            return SimpleNamespace(text=text)

        with self.assertLogs("scribe", level="WARNING"):
            message = await self.bot._try_send(send, "<b>a &lt; b &amp;&amp; c &gt; d</b>", ParseMode.HTML)

        self.assertEqual(message.text, "a < b && c > d")
        self.assertEqual(sent[-1], ("a < b && c > d", None))

    async def test_shutdown_flushes_buffered_messages(self):
        await self._send("remember me")
        await self.bot.shutdown()

        self.assertEqual(self.bot.store.pending_count(), 0)
        path = self.bot.store.path_for(self.bot.partition_for(self.chat))
        data = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual([item["text"] for item in data], ["remember me"])


if __name__ == "__main__":
    unittest.main()
