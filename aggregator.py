"""
ChatScribe — External Search Aggregator
Streams the output of an external index search process, rebuilds lines across
chunk boundaries, cleans them through an ordered pipeline of small stages,
deduplicates, and stops the producer once the result quota is reached.
"""

import asyncio
import codecs
import json
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

log = logging.getLogger("scribe.aggregator")

MARKER = 'preview"'
DEFAULT_QUOTA = 500
PLACEHOLDER = "[--]"
STDERR_TAIL_LINES = 20
STDERR_LINE_CHARS = 1000

_WHITESPACE_RUN_RE = re.compile(r"\s{3,}")
_STRUCTURAL_LABELS = ("URL:", "TITLE:", "\t")


class ProducerError(RuntimeError):
    """The search process could not be started or its output could not be read."""


class SessionState(Enum):
    RUNNING = "running"
    TERMINATING = "terminating"
    CLOSED = "closed"


# ──────────────────────────────────────────────────────────────
# Line Reconstruction
# ──────────────────────────────────────────────────────────────


class LineSplitter:
    """Turns arbitrarily split text chunks into complete lines."""

    def __init__(self):
        self.leftover = ""

    def feed(self, chunk: str) -> list[str]:
        parts = (self.leftover + chunk).split("\n")
        self.leftover = parts.pop()
        return parts

    def take_leftover(self) -> str:
        leftover, self.leftover = self.leftover, ""
        return leftover


# ──────────────────────────────────────────────────────────────
# Line Pipeline
# ──────────────────────────────────────────────────────────────
# Each stage returns the transformed text, or None to drop the line.


def trim(text: str) -> str | None:
    return text.strip()


def payload_after_marker(text: str) -> str | None:
    idx = text.find(MARKER)
    if idx == -1:
        return None
    return text[idx + len(MARKER):]


def strip_framing(text: str) -> str | None:
    text = text.replace('\n"}\n', "", 1)
    text = text.replace(',""', "")

    stripped = text.lstrip()
    if stripped.startswith(":") and stripped[1:].lstrip().startswith("{"):
        # Object payload: drop the key separator and any closing braces
        # that belong to the enclosing record.
        text = stripped[1:].lstrip()
        while text.endswith("}") and text.count("}") > text.count("{"):
            text = text[:-1]
        return text

    text = text.replace('"}', "", 1)
    if text.startswith(':"'):
        text = text[2:]
    return text


def reject_truncated_link(text: str) -> str | None:
    # A complete link record carries the scheme colon plus at least one field separator.
    if "https://" in text and text.count(":") < 2:
        return None
    return text


def reject_whitespace_runs(text: str) -> str | None:
    if _WHITESPACE_RUN_RE.search(text):
        return None
    return text


def reject_structural_fields(text: str) -> str | None:
    if any(label in text for label in _STRUCTURAL_LABELS):
        return None
    return text


def _field(obj: dict, key: str, default: str = PLACEHOLDER) -> str:
    value = obj.get(key)
    if value is None:
        return default
    return str(value)


def render_structured(text: str) -> str | None:
    """Render a JSON account record as one delimited line; keep anything else as is."""
    if not text.startswith('{"'):
        return text
    try:
        obj = json.loads(text)
    except ValueError:
        return text
    if not isinstance(obj, dict):
        return text

    password = obj.get("password_plaintext")
    if password is None:
        password = obj.get("password")
    return ":".join(
        [
            _field(obj, "first_name"),
            _field(obj, "last_name"),
            _field(obj, "username"),
            f"({_field(obj, 'email_domain', '')})",
            _field(obj, "email"),
            PLACEHOLDER if password is None else str(password),
            f"https://{_field(obj, 'target_domain')}",
        ]
    )


LINE_PIPELINE: tuple[Callable[[str], str | None], ...] = (
    trim,
    payload_after_marker,
    strip_framing,
    reject_truncated_link,
    reject_whitespace_runs,
    reject_structural_fields,
    render_structured,
)


def clean_line(line: str) -> str | None:
    """Run one producer line through the pipeline. Returns None if rejected."""
    text: str | None = line
    for stage in LINE_PIPELINE:
        text = stage(text)
        if text is None:
            return None
    return text


# ──────────────────────────────────────────────────────────────
# Aggregation Session
# ──────────────────────────────────────────────────────────────


@dataclass
class AggregationResult:
    lines: list[str]
    quota: int
    quota_reached: bool = False
    exit_code: int | None = None
    timed_out: bool = False
    stderr_tail: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.lines)


class AggregationSession:
    """
    Collects unique cleaned lines from a chunked text stream.

    Pure state machine (RUNNING → TERMINATING → CLOSED): it never touches the
    producer process itself. ``feed`` reports when the quota has just been
    reached so the caller can stop the producer.
    """

    def __init__(self, quota: int = DEFAULT_QUOTA):
        self.quota = max(1, int(quota))
        self.state = SessionState.RUNNING
        self._splitter = LineSplitter()
        # dict as an insertion-ordered set
        self._lines: dict[str, None] = {}

    @property
    def count(self) -> int:
        return len(self._lines)

    @property
    def quota_reached(self) -> bool:
        return len(self._lines) >= self.quota

    def feed(self, chunk: str) -> bool:
        """Process one chunk. Returns True when this chunk exhausted the quota."""
        if self.state is not SessionState.RUNNING:
            return False
        for line in self._splitter.feed(chunk):
            if self._accept(line):
                return True
        return False

    def _accept(self, line: str) -> bool:
        cleaned = clean_line(line)
        if cleaned is None:
            return False
        self._lines.setdefault(cleaned, None)
        if len(self._lines) >= self.quota:
            self.state = SessionState.TERMINATING
            return True
        return False

    def finish(
        self,
        exit_code: int | None = None,
        timed_out: bool = False,
        stderr_tail: list[str] | None = None,
    ) -> AggregationResult:
        """Close the session, running a trailing unterminated line if still collecting."""
        if self.state is SessionState.RUNNING:
            leftover = self._splitter.take_leftover()
            if leftover.strip():
                self._accept(leftover)
        self.state = SessionState.CLOSED
        return AggregationResult(
            lines=list(self._lines),
            quota=self.quota,
            quota_reached=self.quota_reached,
            exit_code=exit_code,
            timed_out=timed_out,
            stderr_tail=list(stderr_tail or []),
        )


# ──────────────────────────────────────────────────────────────
# Producer Process
# ──────────────────────────────────────────────────────────────


def _stop_producer(proc: asyncio.subprocess.Process, force: bool = False):
    if proc.returncode is not None:
        return
    try:
        if force:
            proc.kill()
        else:
            proc.terminate()
    except ProcessLookupError:
        pass


async def _consume_stdout(
    proc: asyncio.subprocess.Process,
    session: AggregationSession,
    chunk_size: int,
):
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await proc.stdout.read(chunk_size)
        if not data:
            break
        if session.state is not SessionState.RUNNING:
            # Keep draining so the producer never blocks on a full pipe.
            continue
        if session.feed(decoder.decode(data)):
            log.info(f"Quota of {session.quota} unique lines reached; stopping producer")
            _stop_producer(proc)

    tail = decoder.decode(b"", final=True)
    if tail:
        session.feed(tail)


async def _drain_stderr(stream: asyncio.StreamReader, tail: deque, label: str, chunk_size: int = 4096):
    """Log the producer's stderr line by line, reading fixed-size chunks.

    Lines longer than STDERR_LINE_CHARS are reported once, truncated; the
    rest of such a line is drained and dropped.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    splitter = LineSplitter()
    overlong = False

    def emit(line: str):
        line = line.rstrip()
        if len(line) > STDERR_LINE_CHARS:
            line = line[:STDERR_LINE_CHARS] + " ...[truncated]"
        if line:
            tail.append(line)
            log.warning(f"[{label} stderr] {line}")

    while True:
        data = await stream.read(chunk_size)
        if not data:
            break
        for line in splitter.feed(decoder.decode(data)):
            if overlong:
                # Tail end of a line that was already reported.
                overlong = False
                continue
            emit(line)
        if len(splitter.leftover) > STDERR_LINE_CHARS:
            partial = splitter.take_leftover()
            if not overlong:
                emit(partial)
                overlong = True

    leftover = splitter.take_leftover() + decoder.decode(b"", final=True)
    if not overlong:
        emit(leftover)


async def run_external_search(
    command: list[str],
    term: str,
    quota: int = DEFAULT_QUOTA,
    timeout_sec: float = 0,
    chunk_size: int = 65536,
) -> AggregationResult:
    """
    Run the search producer for ``term`` and aggregate its output.

    Raises ProducerError if the process cannot be started or its stdout
    cannot be read. A timeout (when ``timeout_sec`` > 0) kills the producer
    and returns what was collected so far with ``timed_out`` set.
    """
    if not command:
        raise ProducerError("no search command configured")

    label = Path(command[0]).name
    session = AggregationSession(quota)
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            term,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        log.error(f"Failed to start {label}: {e}")
        raise ProducerError(f"failed to start {label}: {e}") from e

    log.info(f"Started {label} (pid {proc.pid}) for {term!r}, quota {session.quota}")
    stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
    stderr_task = asyncio.create_task(_drain_stderr(proc.stderr, stderr_tail, label))

    timed_out = False
    finished = False
    try:
        if timeout_sec and timeout_sec > 0:
            await asyncio.wait_for(_consume_stdout(proc, session, chunk_size), timeout=timeout_sec)
        else:
            await _consume_stdout(proc, session, chunk_size)
        finished = True
    except asyncio.TimeoutError:
        timed_out = True
        log.warning(f"{label} timed out after {timeout_sec}s; killing producer")
    except OSError as e:
        log.error(f"I/O error while reading from {label}: {e}")
        raise ProducerError(f"error reading from {label}: {e}") from e
    finally:
        if not finished:
            _stop_producer(proc, force=True)
        exit_code = await proc.wait()
        try:
            await asyncio.wait_for(stderr_task, timeout=5)
        except asyncio.TimeoutError:
            stderr_task.cancel()
        except (OSError, ValueError) as e:
            # stderr is diagnostics only; losing it never costs the result.
            log.warning(f"Stopped reading {label} stderr: {e}")

    if exit_code:
        log.info(f"{label} exited with code {exit_code}")
    result = session.finish(exit_code=exit_code, timed_out=timed_out, stderr_tail=list(stderr_tail))
    log.info(
        f"{label} search for {term!r} finished: {result.count} unique line(s), "
        f"quota reached: {result.quota_reached}"
    )
    return result


def write_results(path: str | Path, result: AggregationResult) -> Path:
    """Write the aggregated lines, newline-delimited, as the result artifact."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("\n".join(result.lines), encoding="utf-8")
    return target
