"""External index search (/z): stream the producer, reply with a result file."""

from __future__ import annotations

import asyncio
from pathlib import Path

from telegram import Update
from telegram.constants import ParseMode

from aggregator import ProducerError, run_external_search, write_results
from logstore import Partition
from queries import UsageError

from ..formatting import _escape_html, render_external_caption
from ..logging_setup import log
from ..types import ParsedCommand


class BotExternalSearchMixin:
    async def _cmd_external_search(
        self, update: Update, context, parsed: ParsedCommand, partition: Partition
    ):
        session_id = self._session_id_from_update(update)
        if update.effective_user and self.is_blocked_from_external_search(update.effective_user.id):
            await self._reply_logged(update, "Nah.")
            return

        term = parsed.content.strip()
        if not term:
            raise UsageError(f"Usage: {parsed.prefix} <search-term>")

        log.info(f"[{session_id}] External search for {term!r}")
        try:
            result = await run_external_search(
                self.config.external_search_command,
                term,
                quota=self.config.external_search_max_lines,
                timeout_sec=self.config.external_search_timeout_sec,
            )
        except ProducerError as e:
            await self._reply_logged(update, f"Error running search: {_escape_html(str(e))}")
            return

        if result.count == 0:
            await self._reply_logged(update, f'No results for "{_escape_html(term)}".')
            return

        path = await asyncio.to_thread(
            write_results, Path(self.config.external_search_results_path), result
        )
        await self._reply_document_logged(
            update,
            "\n".join(result.lines).encode("utf-8"),
            path.name,
            caption=render_external_caption(term[:200], result),
            parse_mode=ParseMode.HTML,
        )
