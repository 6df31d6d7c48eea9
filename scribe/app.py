"""Application entrypoint and Telegram handler registration."""

from __future__ import annotations

import os
from pathlib import Path

from telegram.ext import Application, CommandHandler, MessageHandler, filters

from config import load_config

from .bot import ScribeBot
from .constants import PROJECT_ROOT
from .logging_setup import configure_optional_json_logging, log


def resolve_runtime_path(path_value: str) -> Path:
    """Resolve configured paths relative to SCRIBE_HOME or project root."""
    runtime_home = os.getenv("SCRIBE_HOME", "").strip()
    base_dir = Path(runtime_home).expanduser().resolve() if runtime_home else PROJECT_ROOT
    path = Path(path_value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def main():
    """Start the ChatScribe Telegram bot."""
    config = load_config()

    config.log_dir = str(resolve_runtime_path(config.log_dir))
    config.external_search_results_path = str(resolve_runtime_path(config.external_search_results_path))
    if config.llm_context_path:
        config.llm_context_path = str(resolve_runtime_path(config.llm_context_path))

    Path(config.log_dir).mkdir(parents=True, exist_ok=True)
    configure_optional_json_logging(resolve_runtime_path("."))

    if not config.telegram_bot_token:
        log.error("TELEGRAM_BOT_TOKEN is required. Set it in .env")
        return

    log.info("📜 ChatScribe starting...")
    log.info(f"   Log dir: {config.log_dir} (flush every {config.log_flush_interval_sec}s)")
    log.info(
        f"   External search: {' '.join(config.external_search_command)} "
        f"(max {config.external_search_max_lines} lines, "
        f"timeout {config.external_search_timeout_sec or 'none'}s)"
    )
    log.info(f"   Prompt endpoint: {config.command_base_url or 'not configured'}")
    log.info(f"   Summary model: {config.summary_model} ({config.summary_base_url or 'OpenAI'})")
    if config.telegram_allowed_users:
        log.info(f"   Allowed users: {', '.join(config.telegram_allowed_users)}")
    else:
        log.info("   Allowed users: everyone")

    bot = ScribeBot(config)

    async def _post_init(application: Application):
        await bot._ensure_flush_task()

    async def _post_shutdown(application: Application):
        await bot.shutdown()

    app = (
        Application.builder()
        .token(config.telegram_bot_token)
        .concurrent_updates(True)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    app.add_handler(CommandHandler("start", bot.cmd_start))
    app.add_handler(CommandHandler("help", bot.cmd_help))
    # Separate group: every text message is logged, including bot commands like /z.
    app.add_handler(MessageHandler(filters.TEXT, bot.handle_message), group=1)
    app.add_error_handler(bot.on_error)

    log.info("📜 ChatScribe is running! Press Ctrl+C to stop.")

    app.run_polling(drop_pending_updates=True, timeout=30)
