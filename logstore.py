"""
ChatScribe — Message Log
Append-only per-(conversation, day) message log.
Buffered in memory, merged into one JSON file per partition on a timer.
"""

import asyncio
import json
import logging
import os
import re
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

log = logging.getLogger("scribe.logstore")

_UNSAFE_NAME_RE = re.compile(r"[/\\\x00]")


# ──────────────────────────────────────────────────────────────
# Records & Partitions
# ──────────────────────────────────────────────────────────────


@dataclass
class Record:
    message_id: int | None = None
    date: str = ""
    text: str = ""
    sender_id: int | None = None
    sender_username: str | None = None
    sender_first_name: str | None = None
    sender_last_name: str | None = None

    @property
    def author(self) -> str:
        """Best-effort display name: handle, else given name, else "User"."""
        return self.sender_username or self.sender_first_name or "User"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if values.get("text") is None:
            values["text"] = ""
        if values.get("date") is None:
            values["date"] = ""
        return cls(**values)


@dataclass(frozen=True)
class Partition:
    """One conversation on one calendar day."""

    conversation: str
    day: str

    @property
    def filename(self) -> str:
        safe = _UNSAFE_NAME_RE.sub("_", self.conversation) or "_"
        return f"{safe}-{self.day}.json"

    @classmethod
    def for_date(cls, conversation: str, when: datetime | None = None) -> "Partition":
        when = when or datetime.now(timezone.utc)
        if when.tzinfo is not None:
            when = when.astimezone(timezone.utc)
        return cls(conversation=conversation, day=when.date().isoformat())


def _read_records(path: Path, strict: bool = False) -> list[Record]:
    """Read a partition file. Missing or corrupt content reads as empty.

    With ``strict`` any other I/O error propagates, so a caller about to
    overwrite the file never mistakes an unreadable file for an empty one.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except OSError as e:
        if strict:
            raise
        log.warning(f"Could not read log file {path.name}: {e}")
        return []

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        log.warning(f"Ignoring corrupt log file {path.name}: {e}")
        return []
    if not isinstance(data, list):
        log.warning(f"Ignoring log file {path.name}: expected a JSON array")
        return []
    return [Record.from_dict(item) for item in data if isinstance(item, dict)]


def _write_records(path: Path, records: list[Record]):
    """Overwrite a partition file with the full record sequence."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    os.replace(tmp_path, path)


# ──────────────────────────────────────────────────────────────
# Log Store
# ──────────────────────────────────────────────────────────────


class LogStore:
    """
    Per-partition message log.

    Appends only touch the in-memory buffer. ``flush`` is the sole writer of
    durable state: it merges each buffer into the partition's JSON file and
    drops the buffered records only once the write succeeded, so a failing
    disk keeps records in memory until a later flush gets them out.
    """

    def __init__(self, log_dir: str | Path = "logs"):
        self.log_dir = Path(log_dir)
        self._buffers: dict[Partition, list[Record]] = {}
        self._locks: dict[Partition, asyncio.Lock] = {}

    def _lock_for(self, partition: Partition) -> asyncio.Lock:
        lock = self._locks.get(partition)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[partition] = lock
        return lock

    def path_for(self, partition: Partition) -> Path:
        return self.log_dir / partition.filename

    # ── Append ────────────────────────────────────────────────

    def append(self, partition: Partition, record: Record):
        """Buffer a record for the partition. Never touches disk."""
        self._buffers.setdefault(partition, []).append(record)

    def pending_count(self) -> int:
        return sum(len(buffered) for buffered in self._buffers.values())

    # ── Read ──────────────────────────────────────────────────

    async def read_all(self, partition: Partition) -> list[Record]:
        """Durable records followed by the not-yet-flushed ones, in insertion order."""
        async with self._lock_for(partition):
            durable = await asyncio.to_thread(_read_records, self.path_for(partition))
            return durable + list(self._buffers.get(partition, []))

    # ── Flush ─────────────────────────────────────────────────

    async def flush(self) -> int:
        """Merge every non-empty buffer into durable storage.

        Returns the number of records written. Failed partitions keep their
        buffer and are retried on the next call.
        """
        written = 0
        for partition in list(self._buffers):
            written += await self._flush_partition(partition)
        return written

    async def _flush_partition(self, partition: Partition) -> int:
        async with self._lock_for(partition):
            buffered = self._buffers.get(partition)
            if not buffered:
                return 0
            # Appends may land while the write is awaited; only the
            # snapshotted head of the buffer is dropped afterwards.
            pending = list(buffered)
            path = self.path_for(partition)
            try:
                existing = await asyncio.to_thread(_read_records, path, True)
                await asyncio.to_thread(_write_records, path, existing + pending)
            except (OSError, TypeError, ValueError) as e:
                log.error(
                    f"Failed to write {path.name} ({len(pending)} buffered record(s) kept for retry): {e}"
                )
                return 0

            del buffered[: len(pending)]
            if not buffered:
                self._buffers.pop(partition, None)
            log.debug(f"Flushed {len(pending)} record(s) to {path.name}")
            return len(pending)
