"""Logging configuration for ChatScribe.

Human-readable lines go to the console. ``JSON_LOG_ENABLED`` adds a JSONL
file sink for the whole ``scribe`` logger tree (bot, message log,
aggregator and endpoint clients).
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_LEVEL_NAME = os.getenv("SCRIBE_LOG_LEVEL", "").strip().upper() or "INFO"

logging.basicConfig(
    level=getattr(logging, _LEVEL_NAME, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("scribe")

_TRANSPORT_LOGGERS = ("httpx", "httpcore", "openai._base_client")

# Transport loggers stay at WARNING unless SCRIBE_VERBOSE_HTTP=1.
if os.getenv("SCRIBE_VERBOSE_HTTP", "").strip().lower() not in {"1", "true", "yes"}:
    for _name in _TRANSPORT_LOGGERS:
        logging.getLogger(_name).setLevel(logging.WARNING)


_CHAT_PREFIX_RE = re.compile(r"^\[(?P<chat>[^\]]+)\]\s*(?P<body>.*)$", re.DOTALL)

# Child logger suffix -> operation tag in the JSON sink.
_COMPONENT_OPERATIONS = {
    "logstore": "log_flush",
    "aggregator": "external_search",
    "providers": "remote_call",
}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "")
    if not raw:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _operation_for(logger_name: str, body: str) -> str:
    lower = (body or "").lower()
    if lower.startswith("user:"):
        return "user_message"
    if lower.startswith("bot:"):
        return "bot_message"
    component = logger_name.rsplit(".", 1)[-1]
    if component in _COMPONENT_OPERATIONS:
        return _COMPONENT_OPERATIONS[component]
    if "flush" in lower:
        return "log_flush"
    return "general"


class _JsonLogFormatter(logging.Formatter):
    """One JSON object per line; the ``[chat]`` prefix becomes its own field."""

    def format(self, record: logging.LogRecord) -> str:
        body = record.getMessage()
        chat: str | None = None
        matched = _CHAT_PREFIX_RE.match(body or "")
        if matched:
            chat, body = matched.group("chat"), matched.group("body")

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "operation": _operation_for(record.name, body),
            "chat": chat,
            "message": body,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _json_log_path(runtime_root: str | Path | None) -> Path:
    base = Path(runtime_root).expanduser().resolve() if runtime_root else Path.cwd().resolve()
    raw = os.getenv("JSON_LOG_PATH", "").strip()
    if not raw:
        return (base / "logs" / "scribe.jsonl").resolve()
    path = Path(raw).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def configure_optional_json_logging(runtime_root: str | Path | None = None) -> Path | None:
    """Attach the JSONL sink when JSON_LOG_ENABLED is set. Returns its path.

    JSON_LOG_PATH overrides the default ``<runtime_root>/logs/scribe.jsonl``.
    Calling it twice does not add a second handler.
    """
    if not _env_flag("JSON_LOG_ENABLED"):
        return None

    path = _json_log_path(runtime_root)
    for handler in log.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename).resolve() == path:
            return path

    path.parent.mkdir(parents=True, exist_ok=True)
    sink = logging.FileHandler(path, mode="a", encoding="utf-8")
    sink.setLevel(logging.INFO)
    sink.setFormatter(_JsonLogFormatter())
    log.addHandler(sink)
    log.info(f"Structured JSON logging enabled: {path.as_posix()}")
    return path
