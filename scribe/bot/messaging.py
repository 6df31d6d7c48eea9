"""Reply delivery (text chunks, documents) and Telegram framework errors."""

from __future__ import annotations

import html
import re
import time

from telegram import Update
from telegram.error import BadRequest, Conflict, NetworkError, RetryAfter, TelegramError
from telegram.ext import ContextTypes

from ..logging_setup import log

# Below Telegram's 4096 so escaped entities still fit.
TEXT_CHUNK_LIMIT = 3500
CAPTION_LIMIT = 1024
_TAG_RE = re.compile(r"<[^>]+>")


class BotMessagingMixin:
    @staticmethod
    def _chunk_message(text: str, max_len: int = TEXT_CHUNK_LIMIT) -> list[str]:
        """Cut at the last newline before ``max_len``; hard-cut lines longer than that.

        Rendered replies keep every HTML tag on one line, so newline cuts
        never split markup.
        """
        chunks: list[str] = []
        remaining = text
        while len(remaining) > max_len:
            cut = remaining.rfind("\n", 0, max_len)
            if cut <= 0:
                cut = max_len
            chunks.append(remaining[:cut])
            remaining = remaining[cut:].lstrip("\n")
        if remaining or not chunks:
            chunks.append(remaining)
        return chunks

    async def _try_send(self, send_fn, text: str, parse_mode: str | None = None):
        """Send ``text``; if Telegram rejects the markup, resend it without tags.

        Network and rate-limit errors propagate to ``on_error``. Returns the
        sent message, or None when the plain-text send failed too.
        """
        if parse_mode:
            try:
                return await send_fn(text, parse_mode=parse_mode)
            except BadRequest as e:
                # BadRequest subclasses NetworkError; only it means the markup was refused.
                log.warning(f"Telegram rejected {parse_mode} reply, resending as plain text: {e}")
            text = html.unescape(_TAG_RE.sub("", text))

        try:
            return await send_fn(text)
        except TelegramError as e:
            log.error(f"Failed to send reply chunk: {e}")
            return None

    async def _reply_document_logged(
        self,
        update: Update,
        data: bytes,
        filename: str,
        caption: str | None = None,
        parse_mode: str | None = None,
    ):
        session_id = self._session_id_from_update(update)
        self._log_bot_message(session_id, f"[file: {filename}] {caption or ''}".rstrip())
        if caption and len(caption) > CAPTION_LIMIT:
            caption = caption[: CAPTION_LIMIT - 3] + "..."
        return await update.message.reply_document(
            document=data,
            filename=filename,
            caption=caption,
            parse_mode=parse_mode,
        )

    # ── Framework Errors ──────────────────────────────────────

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Log framework errors by kind; only unexpected ones carry a traceback."""
        err = context.error
        session_id = self._session_id_from_update(update) if isinstance(update, Update) else "unknown"

        if isinstance(err, Conflict):
            # getUpdates conflicts repeat every poll; report at most every 30s.
            now = time.time()
            if now - self._last_telegram_conflict_log_at >= 30:
                self._last_telegram_conflict_log_at = now
                log.warning(f"[{session_id}] Polling conflict: another ChatScribe instance uses this bot token.")
            return
        if isinstance(err, RetryAfter):
            log.warning(f"[{session_id}] Telegram rate limit: retry after {err.retry_after}s")
            return
        if isinstance(err, NetworkError):
            log.warning(f"[{session_id}] Telegram network issue: {err}")
            return

        log.error(f"[{session_id}] Unhandled Telegram error: {err}", exc_info=err)
