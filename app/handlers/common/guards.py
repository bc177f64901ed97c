"""
DB readiness and permission guards. Shared across all handler domains.
"""
import logging

import database
from aiogram.enums import ChatMemberStatus
from aiogram.types import Message

from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text

logger = logging.getLogger(__name__)

ADMIN_STATUSES = (ChatMemberStatus.CREATOR, ChatMemberStatus.ADMINISTRATOR)


async def ensure_db_ready_message(message: Message) -> bool:
    """
    Проверка готовности базы данных с отправкой сообщения пользователю

    Returns:
        True если БД готова, False если БД недоступна (сообщение отправлено)
    """
    if database.DB_READY:
        return True

    try:
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "main.service_unavailable"))
    except Exception as e:
        logger.exception(f"Error sending degraded mode message: {e}")
    return False


async def is_chat_admin(bot, chat_id: int, user_id: int) -> bool:
    """
    creator/administrator check through getChatMember.
    Lookup failures count as "not an admin" (silent ignore).
    """
    try:
        member = await bot.get_chat_member(chat_id, user_id)
    except Exception as e:
        logger.error(f"Error checking admin status: chat={chat_id}, user={user_id}: {e}")
        return False
    return member.status in ADMIN_STATUSES
