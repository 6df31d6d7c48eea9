"""Inbound text handling: log every message, then route prefixed commands."""

from __future__ import annotations

from telegram import Message, Update
from telegram.ext import ContextTypes

from logstore import Partition
from queries import UsageError

from ..formatting import _escape_html
from ..logging_setup import log
from ..types import ParsedCommand


class BotHandlersMixin:
    def _is_own_message(self, message: Message | None, context: ContextTypes.DEFAULT_TYPE) -> bool:
        if message is None or message.from_user is None:
            return False
        if message.from_user.id == context.bot.id:
            return True
        username = self.config.bot_username
        return bool(username) and (message.from_user.username or "").lower() == username.lower()

    @staticmethod
    def _strip_bot_mention(content: str, bot_username: str | None) -> str:
        # "/z@my_bot term" leaves "@my_bot term" after the prefix.
        if bot_username and content.lower().startswith(f"@{bot_username.lower()}"):
            return content[len(bot_username) + 1:].strip()
        return content

    # ── Message Handler ───────────────────────────────────────

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Log the message into today's partition and dispatch any command it carries."""
        message = update.message
        if not message or message.text is None or not update.effective_chat:
            return

        session_id = self._session_id_from_update(update)
        partition = self.partition_for(update.effective_chat)
        self.store.append(partition, self.record_from_message(message))
        log.debug(f"[{session_id}] Logged message {message.message_id} to {partition.filename}")

        if not update.effective_user or not self.is_allowed(update.effective_user.id):
            return

        replied = message.reply_to_message
        parsed = self.router.resolve(
            message.text,
            replied_text=replied.text if replied else None,
            replied_is_own=self._is_own_message(replied, context),
        )
        if parsed is None:
            return

        parsed.content = self._strip_bot_mention(parsed.content, context.bot.username)
        self._log_user_message(session_id, message.text)
        await self._dispatch(update, context, parsed, partition)

    async def _dispatch(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
        parsed: ParsedCommand,
        partition: Partition,
    ):
        handler = getattr(self, f"_cmd_{parsed.command}", None)
        if handler is None:
            return

        session_id = self._session_id_from_update(update)
        try:
            await handler(update, context, parsed, partition)
        except UsageError as e:
            await self._reply_logged(update, _escape_html(str(e)))
        except Exception:
            log.exception(f"[{session_id}] Command {parsed.command} failed")
            await self._reply_logged(
                update, "Sorry, I encountered an error while processing your request."
            )
