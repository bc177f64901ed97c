import asyncio
import hashlib
import logging
import os
import sys
import uuid

import config

# Configure logging FIRST (before any other imports that may log)
# Routes INFO/WARNING → stdout, ERROR/CRITICAL → stderr for correct container classification
from app.core.logging_config import setup_logging
setup_logging(config.LOG_LEVEL)

import uvicorn
from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand

import database
from app import api
from app.api import admin_broadcast, telegram_webhook
from app.core.concurrency_middleware import ConcurrencyLimiterMiddleware
from app.core.structured_logger import log_event
from app.core.telegram_error_middleware import TelegramErrorBoundaryMiddleware
from app.handlers import router as root_router
from app.services.notifications import drain_pending

# ====================================================================================
# LOGGING CONTRACT
# ====================================================================================
# Standard log fields (app.core.structured_logger.log_event):
# - component        (referrals / broadcast / telegram / http / polling / shutdown)
# - operation        (what is happening)
# - correlation_id   (message_id for handlers, UUID per broadcast run)
# - outcome          (transition outcome | success | failed)
# - duration_ms      (when applicable)
# - reason           (short, non-PII explanation)
#
# FAILURE TAXONOMY (app.utils.logging_helpers.classify_error):
# - infra_error, dependency_error, domain_error, unexpected_error
#
# SECURITY: DO NOT log secrets, PII, or full payloads
# ====================================================================================

logger = logging.getLogger(__name__)

DB_RETRY_INTERVAL_SECONDS = 30


async def retry_db_init():
    """
    Фоновая задача для повторной инициализации БД.

    Запускается только если DB_READY == False, проверяет БД каждые 30 секунд,
    завершается после успешной инициализации. Никогда не падает.
    """
    logger.info(f"Starting DB initialization retry task (every {DB_RETRY_INTERVAL_SECONDS} seconds)")
    while not database.DB_READY:
        try:
            await asyncio.sleep(DB_RETRY_INTERVAL_SECONDS)
            logger.info("🔄 Retrying database initialization...")
            if await database.init_db():
                logger.info("✅ DATABASE RECOVERY SUCCESSFUL - RESUMING FULL FUNCTIONALITY")
                break
            logger.warning("Database initialization retry failed, will retry later")
        except asyncio.CancelledError:
            logger.info("DB retry task cancelled")
            raise
        except Exception as e:
            logger.warning(f"Database initialization retry error: {type(e).__name__}: {e}")
    logger.info("DB retry task finished")


def build_dispatcher() -> Dispatcher:
    dp = Dispatcher()
    dp.update.middleware(ConcurrencyLimiterMiddleware(config.MAX_CONCURRENT_UPDATES))
    dp.update.middleware(TelegramErrorBoundaryMiddleware())
    dp.include_router(root_router)
    logger.info("CONCURRENCY_LIMIT=%s", config.MAX_CONCURRENT_UPDATES)
    return dp


async def run_polling(bot: Bot, dp: Dispatcher, instance_id: str):
    await bot.delete_webhook(drop_pending_updates=False)
    logger.info("POLLING_START pid=%s instance_id=%s", os.getpid(), instance_id)
    log_event(logger, component="polling", operation="polling_start", outcome="success", correlation_id=instance_id)
    await dp.start_polling(
        bot,
        allowed_updates=dp.resolve_used_update_types(),
        polling_timeout=30,
        handle_signals=False,
    )


async def main():
    instance_id = str(uuid.uuid4())
    bot_token_hash = hashlib.sha256(config.BOT_TOKEN.encode()).hexdigest()[:8]
    logger.info("BOT_INSTANCE_STARTED pid=%s instance_id=%s", os.getpid(), instance_id)
    logger.info("BOT_TOKEN_HASH=%s (first 8 chars of sha256)", bot_token_hash)
    logger.info(f"Starting bot in {config.APP_ENV.upper()} environment, group={config.GROUP_CHAT_ID}")

    bot = Bot(token=config.BOT_TOKEN)
    dp = build_dispatcher()

    try:
        if await database.init_db():
            logger.info("✅ База данных инициализирована успешно")
        else:
            logger.error("❌ DB INIT FAILED - RUNNING IN DEGRADED MODE")
    except Exception:
        logger.exception("❌ DB INIT FAILED - RUNNING IN DEGRADED MODE")
        database.DB_READY = False

    background_tasks = []
    if not database.DB_READY:
        background_tasks.append(asyncio.create_task(retry_db_init()))

    try:
        await bot.set_my_commands([
            BotCommand(command="start", description="Start the bot"),
            BotCommand(command="mylink", description="Get my referral link"),
            BotCommand(command="rank", description="My rank"),
            BotCommand(command="top10", description="Top 10 leaderboard"),
        ])
        logger.info("Bot commands registered")
    except Exception as e:
        logger.warning(f"Failed to register bot commands: {e}")

    # HTTP surface: webhook (when configured), admin broadcast, health
    admin_broadcast.setup(bot)
    telegram_webhook.setup(bot, dp)
    server = uvicorn.Server(uvicorn.Config(
        api.app,
        host=config.HTTP_HOST,
        port=config.WEBHOOK_PORT,
        log_config=None,
    ))
    logger.info(f"HTTP server starting on http://{config.HTTP_HOST}:{config.WEBHOOK_PORT}")

    try:
        if config.WEBHOOK_URL:
            await bot.set_webhook(
                url=config.WEBHOOK_URL,
                secret_token=config.WEBHOOK_SECRET,
                allowed_updates=dp.resolve_used_update_types(),
            )
            logger.info("WEBHOOK_SET url=%s", config.WEBHOOK_URL)
            await server.serve()
        else:
            server_task = asyncio.create_task(server.serve())
            background_tasks.append(server_task)
            await run_polling(bot, dp, instance_id)
    except asyncio.CancelledError:
        logger.info("MAIN_CANCELLED")
    finally:
        log_event(logger, component="shutdown", operation="shutdown_start", outcome="success")
        server.should_exit = True

        for task in background_tasks:
            if not task.done():
                task.cancel()
        for task in background_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Error during shutdown of task {task.get_name()}: {e}")

        await drain_pending()

        try:
            await database.close_pool()
        except Exception as e:
            logger.error(f"Error closing database pool: {e}")

        try:
            await bot.session.close()
            logger.info("Bot session closed")
        except Exception as e:
            logger.error(f"Error closing bot session: {e}")

        log_event(logger, component="shutdown", operation="shutdown_complete", outcome="success")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped (KeyboardInterrupt)")
        sys.exit(0)
