"""Telegram command handlers for /start, /help and the log-query commands."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from telegram import Update
from telegram.ext import ContextTypes

from logstore import Partition
from providers import EndpointError

from ..constants import SUMMARY_MAX_DAYS_BACK
from ..formatting import (
    _escape_html,
    render_fuzzy_results,
    render_search_results,
    render_statistics,
)
from ..logging_setup import log
from ..types import ParsedCommand


def parse_days_back(content: str) -> int:
    """Read the ``-d N`` option of the summarize command (default 0)."""
    args = content.split()
    if "-d" not in args:
        return 0
    idx = args.index("-d")
    if idx + 1 >= len(args):
        return 0
    try:
        days = int(args[idx + 1])
    except ValueError:
        return 0
    return min(max(0, days), SUMMARY_MAX_DAYS_BACK)


class BotCommandsMixin:
    def _command_list_text(self) -> str:
        lines = []
        for spec in self.router.table:
            lines.append(f"<code>{_escape_html(spec.prefix)}</code> {_escape_html(spec.help)}")
        return "\n".join(lines)

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not update.effective_user or not update.message:
            return
        if not self.is_allowed(update.effective_user.id):
            return

        session_id = self._session_id_from_update(update)
        self._log_user_message(session_id, "/start")
        await self._reply_logged(
            update,
            "📜 <b>ChatScribe</b> is ready!\n\n"
            "I keep a daily log of this chat and can search it, summarize it, "
            "and query the external index.\n\n"
            "<b>Commands:</b>\n" + self._command_list_text(),
        )

    # ── /help ─────────────────────────────────────────────────

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not update.effective_user or not update.message:
            return
        if not self.is_allowed(update.effective_user.id):
            return

        session_id = self._session_id_from_update(update)
        self._log_user_message(session_id, "/help")
        await self._reply_logged(
            update,
            "📜 <b>ChatScribe Commands</b>\n\n"
            + self._command_list_text()
            + "\n\nReply to one of my command replies to run the same command again.",
        )

    # ── Log Queries ───────────────────────────────────────────

    async def _cmd_stats(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        stats = await self.queries.statistics(partition)
        await self._reply_logged(update, render_statistics(stats))

    async def _cmd_search(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        query = parsed.content.strip()
        matches = await self.queries.substring_search(partition, query)
        await self._reply_logged(update, render_search_results(query, matches))

    async def _cmd_fuzzy_search(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        query = parsed.content.strip()
        scored = await self.queries.fuzzy_search(partition, query)
        await self._reply_logged(update, render_fuzzy_results(query, scored))

    async def _cmd_summarize(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        session_id = self._session_id_from_update(update)
        days_back = parse_days_back(parsed.content)
        target_day = datetime.now(timezone.utc) - timedelta(days=days_back)
        target = Partition.for_date(partition.conversation, target_day)

        transcript = await self.queries.summary_transcript(target, limit=self.config.summary_message_limit)
        if not transcript:
            await self._reply_logged(update, f"No messages logged for {target.day}.")
            return

        try:
            summary = await self.summaries.summarize(transcript)
        except EndpointError as e:
            log.error(f"[{session_id}] Summary failed: {e}")
            await self._reply_logged(update, "Sorry, I couldn't summarize the chat right now.")
            return

        await self._reply_logged(
            update,
            f"<b>Summary ({days_back} day(s) ago):</b>\n{_escape_html(summary)}",
        )
