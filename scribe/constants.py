"""Shared constants used by the ChatScribe bot."""

from __future__ import annotations

from pathlib import Path

from .types import CommandSpec

# Project root for resolving runtime-relative paths reliably.
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# First matching prefix wins, so longer prefixes sharing a stem must come first.
COMMAND_TABLE: tuple[CommandSpec, ...] = (
    CommandSpec("ask", "!q", "ask the prompt endpoint"),
    CommandSpec("banter", "!cb", "chat with the house persona"),
    CommandSpec("web", "!w", "[+pdf|+inline] <url> fetch a page as markdown"),
    CommandSpec("arf", "!arf", "bark"),
    CommandSpec("summarize", "!cai", "[-d N] summarize today's chat (or N days ago)"),
    CommandSpec("search", "!search", "<keyword> search today's messages"),
    CommandSpec("stats", "!stats", "today's chat statistics"),
    CommandSpec("fuzzy_search", "!fsearch", "<query> fuzzy search today's messages"),
    CommandSpec("external_search", "/z", "<term> search the external index"),
)

SUMMARY_MAX_DAYS_BACK = 365
INLINE_WEB_PREVIEW_CHARS = 2000
ARF_REPEAT = 3
