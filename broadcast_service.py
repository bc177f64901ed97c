"""
Admin broadcast to every known user.

Sequential sends with a pause after every BROADCAST_BATCH_SIZE sends.
Recipients that blocked the bot (TelegramForbiddenError) are deleted from the
store. No retry and no checkpoint: a crash mid-run loses progress, and running
again re-messages recipients that were already reached.
"""
import asyncio
import logging
import time
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramForbiddenError

import config
import database
from app.core.structured_logger import log_event
from app.utils.logging_helpers import generate_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)


async def run_broadcast(
    bot: Bot,
    text: str,
    batch_size: Optional[int] = None,
    pause_seconds: Optional[float] = None,
) -> dict:
    """
    Send `text` to all users.

    Returns:
        {"success_count", "failed_count", "deleted_count", "total", "duration_seconds"}

    Raises:
        Store errors while fetching recipients propagate (nothing was sent yet).
    """
    batch_size = batch_size or config.BROADCAST_BATCH_SIZE
    pause_seconds = config.BROADCAST_PAUSE_SECONDS if pause_seconds is None else pause_seconds

    correlation_id = generate_correlation_id()
    set_correlation_id(correlation_id)

    start_time = time.monotonic()
    success_count = 0
    failed_count = 0
    deleted_count = 0

    recipients = await database.get_all_users_telegram_ids()
    total = len(recipients)
    logger.info(
        f"ADMIN_BROADCAST_STARTED [correlation_id={correlation_id}, total_recipients={total}, "
        f"batch_size={batch_size}]"
    )

    for i, telegram_id in enumerate(recipients):
        try:
            await bot.send_message(telegram_id, text)
            success_count += 1
        except asyncio.CancelledError:
            logger.info(f"ADMIN_BROADCAST_CANCELLED [correlation_id={correlation_id}, processed={i}]")
            raise
        except TelegramForbiddenError:
            failed_count += 1
            logger.warning(f"ADMIN_BROADCAST_BLOCKED [correlation_id={correlation_id}, user={telegram_id}]")
            try:
                if await database.delete_user(telegram_id):
                    deleted_count += 1
            except Exception:
                logger.exception(
                    f"ADMIN_BROADCAST_DELETE_ERROR [correlation_id={correlation_id}, user={telegram_id}]"
                )
        except Exception:
            failed_count += 1
            logger.exception(f"ADMIN_BROADCAST_SEND_ERROR [correlation_id={correlation_id}, user={telegram_id}]")

        sent_so_far = i + 1
        if sent_so_far % batch_size == 0 and sent_so_far < total:
            logger.info(
                f"ADMIN_BROADCAST_PROGRESS [correlation_id={correlation_id}, processed={sent_so_far}, "
                f"success={success_count}, failed={failed_count}]"
            )
            await asyncio.sleep(pause_seconds)

    duration_ms = int((time.monotonic() - start_time) * 1000)
    log_event(
        logger,
        component="broadcast",
        operation="broadcast_run",
        correlation_id=correlation_id,
        outcome="success" if failed_count == 0 else "degraded",
        duration_ms=duration_ms,
        message=(
            f"ADMIN_BROADCAST_COMPLETED [correlation_id={correlation_id}, total_recipients={total}, "
            f"success_count={success_count}, failed_count={failed_count}, deleted_count={deleted_count}, "
            f"duration_ms={duration_ms}]"
        ),
    )

    return {
        "success_count": success_count,
        "failed_count": failed_count,
        "deleted_count": deleted_count,
        "total": total,
        "duration_seconds": duration_ms / 1000,
    }
