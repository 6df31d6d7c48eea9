"""Commands backed by remote endpoints (!q, !cb, !w) and the !arf toy."""

from __future__ import annotations

import asyncio
from pathlib import Path

from telegram import Update
from telegram.constants import ParseMode

from logstore import Partition
from providers import EndpointError
from queries import UsageError

from ..constants import ARF_REPEAT, INLINE_WEB_PREVIEW_CHARS
from ..formatting import _escape_html
from ..logging_setup import log
from ..types import ParsedCommand


def parse_web_args(content: str) -> tuple[str, bool, bool]:
    """Split ``[+pdf][+inline] <url>`` into (url, pdf, inline)."""
    parts = content.split()
    if len(parts) > 1:
        flags = parts[0].lower()
        return parts[1], "+pdf" in flags, "+inline" in flags
    return (parts[0] if parts else ""), False, False


class BotRemoteMixin:
    async def _load_llm_context(self) -> str:
        path_value = self.config.llm_context_path
        if not path_value:
            return ""
        try:
            return await asyncio.to_thread(Path(path_value).read_text, encoding="utf-8")
        except OSError as e:
            log.warning(f"Could not read LLM context file {path_value}: {e}")
            return ""

    async def _prompt_command(self, update: Update, parsed: ParsedCommand, context_text: str):
        question = parsed.content.strip()
        if not question:
            raise UsageError(f"Usage: {parsed.prefix} <question>")

        try:
            answer = await self.endpoints.ask(parsed.command, question, context_text)
        except EndpointError as e:
            log.error(f"[{self._session_id_from_update(update)}] {parsed.command} failed: {e}")
            await self._reply_logged(update, "Sorry, I encountered an error while processing your request.")
            return
        # Prefixed so that replying to this message chains back into the command.
        await self._reply_logged(update, f"{_escape_html(parsed.prefix)} {_escape_html(answer)}")

    async def _cmd_ask(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        await self._prompt_command(update, parsed, "")

    async def _cmd_banter(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        await self._prompt_command(update, parsed, await self._load_llm_context())

    async def _cmd_web(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        url, as_pdf, inline = parse_web_args(parsed.content)
        if not url:
            raise UsageError(f"Usage: {parsed.prefix} [+pdf|+inline] <url>")

        session_id = self._session_id_from_update(update)
        try:
            doc = await self.endpoints.fetch_markdown(url)
            pdf = await self.endpoints.markdown_to_pdf(doc.markdown) if as_pdf else None
        except EndpointError as e:
            log.error(f"[{session_id}] Web fetch failed for {url}: {e}")
            await self._reply_logged(update, "Sorry, I couldn't fetch that page.")
            return

        if inline and pdf is None:
            await self._reply_logged(
                update,
                f"Content for {_escape_html(url)}:\n\n{_escape_html(doc.markdown[:INLINE_WEB_PREVIEW_CHARS])}",
            )
            return

        if inline:
            await self._reply_document_logged(
                update, pdf, f"{doc.name}.pdf", caption=f"Content for {url}:\n\n{doc.markdown}"
            )
            return

        caption = f"<code>Markdown{' and PDF' if pdf else ''} for -&gt;&gt; {_escape_html(url)}</code>"
        await self._reply_document_logged(
            update, doc.data, f"{doc.name}.md", caption=caption, parse_mode=ParseMode.HTML
        )
        if pdf is not None:
            await self._reply_document_logged(update, pdf, f"{doc.name}.pdf")

    async def _cmd_arf(self, update: Update, context, parsed: ParsedCommand, partition: Partition):
        for i in range(ARF_REPEAT):
            await self._reply_logged(update, "ARF!")
            if i < ARF_REPEAT - 1:
                await asyncio.sleep(1)
