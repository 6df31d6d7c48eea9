"""
ChatScribe — Log Queries
Substring search, fuzzy search and daily statistics over a log partition.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

from logstore import LogStore, Partition, Record

_TOKEN_SPLIT_RE = re.compile(r"[\s,!.?;:()]+")


class UsageError(ValueError):
    """A command was invoked without a required argument."""


# ──────────────────────────────────────────────────────────────
# Scoring & Tokenizing
# ──────────────────────────────────────────────────────────────


def fuzzy_score(text: str, query: str) -> float:
    """Ratio of query characters found, in order, as a subsequence of text.

    Single forward pass over the lower-cased text; the query pointer only
    advances on a match and never backtracks.
    """
    q = query.lower()
    if not q:
        raise ValueError("fuzzy_score requires a non-empty query")
    t = text.lower()

    q_index = 0
    matches = 0
    for ch in t:
        if q_index >= len(q):
            break
        if ch == q[q_index]:
            matches += 1
            q_index += 1
    return matches / len(q)


def tokenize(text: str) -> list[str]:
    return [w for w in _TOKEN_SPLIT_RE.split(text.lower()) if w]


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _command_token(text: str) -> str | None:
    trimmed = text.strip()
    if not trimmed.startswith(("!", "/")):
        return None
    return trimmed.split()[0]


# ──────────────────────────────────────────────────────────────
# Statistics
# ──────────────────────────────────────────────────────────────


@dataclass
class ChatStatistics:
    total_messages: int = 0
    unique_participants: int = 0
    top_participants: list[tuple[str, int]] = field(default_factory=list)
    average_length: float = 0.0
    top_words: list[tuple[str, int]] = field(default_factory=list)
    top_hours: list[tuple[int, int]] = field(default_factory=list)
    top_commands: list[tuple[str, int]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_messages == 0


def compute_statistics(records: list[Record]) -> ChatStatistics:
    """Aggregate statistics for a record sequence.

    Every ranking is descending by count with ties kept in first-seen order
    (``Counter.most_common`` sorts stably over insertion order).
    """
    if not records:
        return ChatStatistics()

    authors: Counter[str] = Counter()
    words: Counter[str] = Counter()
    hours: Counter[int] = Counter()
    commands: Counter[str] = Counter()
    total_length = 0

    for record in records:
        authors[record.author] += 1
        text = record.text or ""
        total_length += len(text)
        words.update(tokenize(text))

        stamp = _parse_timestamp(record.date)
        if stamp is not None:
            hours[stamp.astimezone().hour] += 1

        cmd = _command_token(text)
        if cmd:
            commands[cmd] += 1

    return ChatStatistics(
        total_messages=len(records),
        unique_participants=len(authors),
        top_participants=authors.most_common(5),
        average_length=total_length / len(records),
        top_words=words.most_common(10),
        top_hours=hours.most_common(3),
        top_commands=commands.most_common(5),
    )


# ──────────────────────────────────────────────────────────────
# Query Engine
# ──────────────────────────────────────────────────────────────


class QueryEngine:
    """Read-only queries over the records of one partition."""

    def __init__(self, store: LogStore, result_limit: int = 10):
        self.store = store
        self.result_limit = max(1, int(result_limit))

    async def substring_search(self, partition: Partition, query: str) -> list[Record]:
        """Most recent case-insensitive matches, oldest first."""
        needle = (query or "").strip().lower()
        if not needle:
            raise UsageError("Please provide a search keyword.")

        records = await self.store.read_all(partition)
        matches = [r for r in records if r.text and needle in r.text.lower()]
        return matches[-self.result_limit:]

    async def fuzzy_search(self, partition: Partition, query: str) -> list[tuple[float, Record]]:
        """Best subsequence matches, highest score first."""
        query = (query or "").strip()
        if not query:
            raise UsageError("Please provide a query to fuzzy search for, e.g. !fsearch something")

        records = await self.store.read_all(partition)
        scored = [(fuzzy_score(r.text or "", query), r) for r in records]
        scored = [item for item in scored if item[0] > 0]
        scored.sort(key=lambda item: item[0], reverse=True)
        return scored[: self.result_limit]

    async def statistics(self, partition: Partition) -> ChatStatistics:
        records = await self.store.read_all(partition)
        return compute_statistics(records)

    async def summary_transcript(self, partition: Partition, limit: int = 200) -> str:
        """Last ``limit`` records as ``author: text`` lines for summarization."""
        records = await self.store.read_all(partition)
        recent = records[-max(1, int(limit)):]
        return "\n".join(f"{r.author}: {r.text or ''}" for r in recent)
