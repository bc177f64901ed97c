"""
Best-effort bot.send_message for referral notifications and invite links.

A recipient that blocked the bot or never opened a private chat with it is
routine here, so every failure is logged and turned into None. Broadcast
sends directly: it has to see TelegramForbiddenError to delete the recipient.
"""
import logging
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError, TelegramRetryAfter
from aiogram.types import Message

logger = logging.getLogger(__name__)


async def safe_send_message(bot: Bot, chat_id: int, text: str, **kwargs) -> Optional[Message]:
    try:
        return await bot.send_message(chat_id, text, **kwargs)
    except TelegramForbiddenError:
        logger.info(f"SEND_SKIPPED_BLOCKED [chat_id={chat_id}]")
    except TelegramRetryAfter as e:
        # Dropped, never retried
        logger.warning(f"SEND_DROPPED_FLOOD_CONTROL [chat_id={chat_id}, retry_after={e.retry_after}]")
    except TelegramBadRequest as e:
        logger.warning(f"SEND_REJECTED [chat_id={chat_id}, error={e.message}]")
    except Exception:
        logger.exception(f"SEND_FAILED [chat_id={chat_id}]")
    return None
