"""Shared bot state (config, message log, queries, router, clients) and reply helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from telegram import Chat, Message, Update
from telegram.constants import ParseMode

from config import Config
from logstore import LogStore, Partition, Record
from providers import EndpointClient, SummaryClient
from queries import QueryEngine

from ..logging_setup import log
from ..router import CommandRouter


class BotBaseMixin:
    def __init__(self, config: Config):
        self.config = config
        self.store = LogStore(config.log_dir)
        self.queries = QueryEngine(self.store, result_limit=config.search_result_limit)
        self.router = CommandRouter()
        self.summaries = SummaryClient(config)
        self.endpoints = EndpointClient(config)

        # Chat id -> display name used as the log partition key.
        self._conversation_names: dict[int, str] = {}
        # Background task merging buffered messages into the log files.
        self._flush_task = None
        # Throttle repeated Telegram polling conflict warnings.
        self._last_telegram_conflict_log_at: float = 0.0

    def is_allowed(self, user_id: int) -> bool:
        """Commands are open to everyone unless TELEGRAM_ALLOWED_USERS is set."""
        allowed = self.config.telegram_allowed_users
        return not allowed or str(user_id) in allowed

    def is_blocked_from_external_search(self, user_id: int) -> bool:
        return str(user_id) in self.config.external_search_blocked_users

    @staticmethod
    def _session_id_from_update(update: Update | None) -> str:
        chat = update.effective_chat if update else None
        return str(chat.id) if chat else "unknown"

    @staticmethod
    def _trim_for_log(text: str, max_chars: int = 2000) -> str:
        overflow = len(text) - max_chars
        return text if overflow <= 0 else f"{text[:max_chars]} ...[+{overflow} chars]"

    def _log_user_message(self, session_id: str, text: str):
        log.info(f"[{session_id}] User: {self._trim_for_log(text)}")

    def _log_bot_message(self, session_id: str, text: str):
        log.info(f"[{session_id}] Bot: {self._trim_for_log(text)}")

    # ── Conversation & Records ───────────────────────────────

    def conversation_name(self, chat: Chat) -> str:
        """Resolve (and cache) a chat's display name: title, username, first name, id."""
        cached = self._conversation_names.get(chat.id)
        if cached:
            return cached
        name = chat.title or chat.username or chat.first_name or str(chat.id)
        self._conversation_names[chat.id] = name
        return name

    def partition_for(self, chat: Chat, when: datetime | None = None) -> Partition:
        return Partition.for_date(self.conversation_name(chat), when)

    @staticmethod
    def record_from_message(message: Message) -> Record:
        sent_at = message.date or datetime.now(timezone.utc)
        sender = message.from_user
        return Record(
            message_id=message.message_id,
            date=sent_at.astimezone(timezone.utc).isoformat(),
            text=message.text or "",
            sender_id=sender.id if sender else None,
            sender_username=sender.username if sender else None,
            sender_first_name=sender.first_name if sender else None,
            sender_last_name=sender.last_name if sender else None,
        )

    # ── Replies ──────────────────────────────────────────────

    async def _reply_logged(
        self,
        update: Update,
        text: str,
        parse_mode: str | None = ParseMode.HTML,
    ):
        """Reply to Telegram (chunked) and mirror the same content to terminal logs."""
        session_id = self._session_id_from_update(update)
        self._log_bot_message(session_id, text)

        sent = None
        for chunk in self._chunk_message(text):
            sent = await self._try_send(update.message.reply_text, chunk, parse_mode)
        return sent
