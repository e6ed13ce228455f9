"""OTT Pulse bot entry point.

Runs the Telegram bot and the FastAPI status endpoints concurrently
on the same asyncio event loop.
"""

import asyncio
import logging
import sys

import uvicorn
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from ottpulse.bot.handlers import (
    broadcast_command,
    digest_command,
    language_command,
    new_members_handler,
    setadmin_command,
    start_command,
)
from ottpulse.config import (
    DASHBOARD_PORT,
    STATE_PATH,
    ConfigurationError,
    require_config,
    resolve_llm,
)
from ottpulse.dashboard.app import app as fastapi_app
from ottpulse.digest.job import DigestBroadcaster, digest_job
from ottpulse.digest.llm import LLMProvider, get_provider
from ottpulse.digest.settings import DigestSettings
from ottpulse.store import StateStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
# httpx logs every Telegram polling request at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def build_provider() -> LLMProvider | None:
    """Create the configured LLM provider, or None to run without enrichment."""
    provider_name, api_key, model = resolve_llm()
    if not api_key:
        logger.info("No LLM API key configured, enrichment disabled")
        return None
    try:
        provider = get_provider(provider_name, api_key, model=model)
    except (ValueError, ImportError):
        logger.exception("LLM provider %r unavailable, enrichment disabled", provider_name)
        return None
    logger.info("LLM enrichment enabled (%s)", provider_name)
    return provider


async def async_main() -> None:
    """Async entry point: run Telegram bot + FastAPI status server concurrently."""
    # 1. Required configuration
    token, chat_id = require_config()
    settings = DigestSettings.load()
    store = StateStore.create(STATE_PATH, seen_cap=settings.seen_links_cap)

    broadcaster = DigestBroadcaster(store, settings, build_provider(), chat_id)
    fastapi_app.state.broadcaster = broadcaster

    # 2. Build Telegram Application
    app = Application.builder().token(token).build()
    app.bot_data["broadcaster"] = broadcaster

    # 3. Register handlers
    app.add_handler(CommandHandler(["start", "help"], start_command))
    app.add_handler(CommandHandler("setadmin", setadmin_command))
    app.add_handler(CommandHandler("broadcast", broadcast_command))
    app.add_handler(CommandHandler("digest", digest_command))
    app.add_handler(CommandHandler("language", language_command))
    app.add_handler(
        MessageHandler(
            filters.StatusUpdate.NEW_CHAT_MEMBERS & filters.Chat(chat_id),
            new_members_handler,
        )
    )

    # 4. Digest timer
    app.job_queue.run_repeating(
        digest_job,
        interval=settings.interval_seconds,
        first=settings.first_run_seconds,
        data=broadcaster,
        name="weekly_digest",
    )

    # 5. Run Telegram bot + FastAPI server concurrently
    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=DASHBOARD_PORT,
        log_level="info",
    )
    server = uvicorn.Server(config)

    logger.info(
        "Bot starting (status on port %d, digest every %ds)...",
        DASHBOARD_PORT,
        settings.interval_seconds,
    )

    async with app:
        await app.start()
        await app.updater.start_polling()

        try:
            await server.serve()
        finally:
            logger.info("Shutting down...")
            await app.updater.stop()
            await app.stop()


def main() -> None:
    """Build and run the bot."""
    try:
        asyncio.run(async_main())
    except ConfigurationError as exc:
        logger.critical("Refusing to start: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
