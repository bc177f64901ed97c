"""
User commands: /mylink, /rank, /top10 (and their reply-keyboard buttons)
"""
import logging

import config
import database
from aiogram import Bot, F, Router
from aiogram.enums import ChatType
from aiogram.filters import Command
from aiogram.types import Message

from app.handlers.common.guards import ensure_db_ready_message, is_chat_admin
from app.handlers.common.parsing import (
    leaderboard_event_from_message,
    plain_start_event,
    rank_event_from_message,
)
from app.handlers.common.screens import render_leaderboard, render_rank
from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text
from app.services.leaderboard import get_leaderboard, get_rank
from app.services.referrals import refresh_profile
from app.services.referrals.events import build_referral_link

user_router = Router()
logger = logging.getLogger(__name__)


async def _touch_user(message: Message) -> bool:
    """Upsert the acting user (profile refresh). False if the store failed."""
    event = plain_start_event(message)
    try:
        await refresh_profile(event.user_id, event.username, event.first_name)
    except Exception:
        logger.exception(f"USER_UPSERT_FAILED [user={event.user_id}]")
        return False
    return True


@user_router.message(Command("mylink"), F.chat.type == ChatType.PRIVATE)
@user_router.message(F.text == i18n_get_text(DEFAULT_LANGUAGE, "main.button_link"), F.chat.type == ChatType.PRIVATE)
async def cmd_my_link(message: Message):
    """Персональная реферальная ссылка"""
    if not await ensure_db_ready_message(message):
        return

    if not await _touch_user(message):
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.generic"))
        return

    link = build_referral_link(config.TELEGRAM_BASE_URL, config.BOT_USERNAME, message.from_user.id)
    await message.answer(
        i18n_get_text(DEFAULT_LANGUAGE, "referral.your_link", link=link),
        disable_web_page_preview=True,
    )


@user_router.message(Command("rank"))
@user_router.message(F.text == i18n_get_text(DEFAULT_LANGUAGE, "main.button_rank"))
async def cmd_rank(message: Message):
    """Место пользователя в рейтинге"""
    if not await ensure_db_ready_message(message):
        return

    event = rank_event_from_message(message)
    if not await _touch_user(message):
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.rank"))
        return

    try:
        async with database.transaction(isolation="repeatable_read", readonly=True) as conn:
            info = await get_rank(conn, event.user_id)
    except Exception:
        logger.exception(f"RANK_FAILED [user={event.user_id}]")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.rank"))
        return

    await message.answer(render_rank(info), parse_mode="HTML")


@user_router.message(Command("top10"))
@user_router.message(F.text == i18n_get_text(DEFAULT_LANGUAGE, "main.button_top"))
async def cmd_leaderboard(message: Message, bot: Bot):
    """
    Top referrers.

    In a group only chat admins get an answer; everyone else is ignored silently.
    """
    event = leaderboard_event_from_message(message)
    if event.is_group_chat and not await is_chat_admin(bot, event.chat_id, event.user_id):
        return

    if not await ensure_db_ready_message(message):
        return

    if not await _touch_user(message):
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.leaderboard"))
        return

    limit = config.LEADERBOARD_LIMIT
    try:
        async with database.transaction(isolation="repeatable_read", readonly=True) as conn:
            entries = await get_leaderboard(conn, limit)
    except Exception:
        logger.exception(f"LEADERBOARD_FAILED [chat={event.chat_id}, user={event.user_id}]")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.leaderboard"))
        return

    await message.answer(render_leaderboard(entries, limit), parse_mode="HTML")
