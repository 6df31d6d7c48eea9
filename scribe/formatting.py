"""Telegram HTML rendering for query, statistics and search results."""

from __future__ import annotations

from aggregator import AggregationResult
from logstore import Record
from queries import ChatStatistics


def _escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_record(record: Record) -> str:
    return f"[{_escape_html(record.author)} at {_escape_html(record.date)}]: {_escape_html(record.text or '')}"


def render_search_results(query: str, records: list[Record]) -> str:
    if not records:
        return f'No matches found for "{_escape_html(query)}".'
    lines = [f'<b>Search results for "{_escape_html(query)}":</b>']
    lines.extend(render_record(r) for r in records)
    return "\n".join(lines)


def render_fuzzy_results(query: str, scored: list[tuple[float, Record]]) -> str:
    if not scored:
        return f'No fuzzy matches found for "{_escape_html(query)}".'
    lines = [f'<b>Fuzzy search results for "{_escape_html(query)}":</b>']
    lines.extend(render_record(r) for _, r in scored)
    return "\n".join(lines)


def render_statistics(stats: ChatStatistics) -> str:
    if stats.is_empty:
        return "No messages logged yet for today."

    top_users = "\n".join(
        f"{_escape_html(user)}: {count} messages" for user, count in stats.top_participants
    )
    top_words = ", ".join(f"{_escape_html(word)} ({count})" for word, count in stats.top_words)
    top_hours = "\n".join(f"{hour}:00 - {count} msg" for hour, count in stats.top_hours)
    top_commands = ", ".join(f"{_escape_html(cmd)} ({count})" for cmd, count in stats.top_commands)

    return "\n".join(
        [
            "<b>Today's Stats</b>:",
            f"• Total messages: <code>{stats.total_messages}</code>",
            f"• Unique participants: <code>{stats.unique_participants}</code>",
            "• Top participants:",
            top_users or "No messages yet.",
            "",
            f"• Avg message length: <code>{stats.average_length:.2f}</code> chars",
            f"• Top 10 words: {top_words or 'N/A'}",
            "• Top 3 hours (Local Time):",
            top_hours or "N/A",
            "",
            f"• Top 5 commands: {top_commands or 'N/A'}",
        ]
    )


def render_external_caption(term: str, result: AggregationResult) -> str:
    caption = (
        f'{result.count} Search results for "{_escape_html(term)}" '
        f"(showing up to {result.quota} unique lines)."
    )
    if result.timed_out:
        caption += "\nThe search timed out; results may be incomplete."
    return caption
