"""
ChatScribe — Configuration
Settings for the bot, the message log, the external search producer and
the remote endpoints, read from the environment (and .env).
"""

import os
import re
import shlex
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


DEFAULT_MD_TO_PDF_URL = "https://md-to-pdf.fly.dev"


def _strip_inline_comment(value: str) -> str:
    """Drop a trailing ``  # comment`` from an unquoted env value."""
    cleaned = (value or "").strip()
    if cleaned.startswith("#"):
        return ""
    return re.sub(r"\s+#.*$", "", cleaned).strip()


def _env_id_list(name: str) -> list[str]:
    """Comma-separated numeric Telegram user ids; placeholder text is skipped."""
    ids: list[str] = []
    for token in _strip_inline_comment(os.getenv(name, "")).split(","):
        token = token.split("#", 1)[0].strip()
        if token.lstrip("-").isdigit():
            ids.append(token)
    return ids


def _env_str(name: str, default: str = "") -> str:
    return _strip_inline_comment(os.getenv(name, "")) or default


def _env_int(name: str, default: int) -> int:
    raw = _strip_inline_comment(os.getenv(name, ""))
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Config:
    # Telegram
    telegram_bot_token: str = ""
    telegram_allowed_users: list[str] = field(default_factory=list)
    bot_username: str = ""

    # Message log
    log_dir: str = "logs"
    log_flush_interval_sec: int = 300
    search_result_limit: int = 10
    summary_message_limit: int = 200

    # External search producer
    external_search_command: list[str] = field(default_factory=lambda: ["./zindex5"])
    external_search_max_lines: int = 500
    external_search_timeout_sec: int = 600
    external_search_results_path: str = "search_results.txt"
    external_search_blocked_users: list[str] = field(default_factory=list)

    # Prompt endpoint (!q / !cb)
    command_base_url: str = ""
    prompt_model: str = ""
    llm_context_path: str = ""

    # Web content endpoint (!w)
    web_content_url: str = ""
    web_content_api_key: str = ""
    md_to_pdf_url: str = DEFAULT_MD_TO_PDF_URL

    # Chat summaries (OpenAI-compatible)
    openai_api_key: str = ""
    summary_base_url: str = ""
    summary_model: str = "gpt-4o-mini"

    http_timeout_sec: int = 60


def load_config() -> Config:
    """Load config from environment variables."""
    command_raw = _env_str("EXTERNAL_SEARCH_COMMAND", "./zindex5")
    command = shlex.split(command_raw) or ["./zindex5"]

    cfg = Config(
        telegram_bot_token=_env_str("TELEGRAM_BOT_TOKEN"),
        telegram_allowed_users=_env_id_list("TELEGRAM_ALLOWED_USERS"),
        bot_username=_env_str("BOT_USERNAME").lstrip("@"),
        log_dir=_env_str("LOG_DIR", "logs"),
        log_flush_interval_sec=_env_int("LOG_FLUSH_INTERVAL_SEC", 300),
        search_result_limit=_env_int("SEARCH_RESULT_LIMIT", 10),
        summary_message_limit=_env_int("SUMMARY_MESSAGE_LIMIT", 200),
        external_search_command=command,
        external_search_max_lines=_env_int("EXTERNAL_SEARCH_MAX_LINES", 500),
        external_search_timeout_sec=_env_int("EXTERNAL_SEARCH_TIMEOUT_SEC", 600),
        external_search_results_path=_env_str("EXTERNAL_SEARCH_RESULTS_PATH", "search_results.txt"),
        external_search_blocked_users=_env_id_list("EXTERNAL_SEARCH_BLOCKED_USERS"),
        command_base_url=_env_str("COMMAND_BASE_URL").rstrip("/"),
        prompt_model=_env_str("PROMPT_MODEL"),
        llm_context_path=_env_str("LLM_CONTEXT_PATH"),
        web_content_url=_env_str("WEB_CONTENT_URL"),
        web_content_api_key=_env_str("WEB_CONTENT_API_KEY"),
        md_to_pdf_url=_env_str("MD_TO_PDF_URL", DEFAULT_MD_TO_PDF_URL),
        openai_api_key=_env_str("OPENAI_API_KEY"),
        summary_base_url=_env_str("SUMMARY_BASE_URL"),
        summary_model=_env_str("SUMMARY_MODEL", "gpt-4o-mini"),
        http_timeout_sec=_env_int("HTTP_TIMEOUT_SEC", 60),
    )

    cfg.log_flush_interval_sec = max(5, int(cfg.log_flush_interval_sec))
    cfg.search_result_limit = max(1, int(cfg.search_result_limit))
    cfg.summary_message_limit = max(1, int(cfg.summary_message_limit))
    cfg.external_search_max_lines = max(1, int(cfg.external_search_max_lines))
    # 0 disables the producer timeout.
    cfg.external_search_timeout_sec = max(0, int(cfg.external_search_timeout_sec))
    cfg.http_timeout_sec = max(5, int(cfg.http_timeout_sec))

    return cfg
