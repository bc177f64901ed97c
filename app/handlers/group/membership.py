"""
Group service messages: new_chat_members / left_chat_member in the contest group.

Each member is processed on its own (profile refresh, then the transition,
each committed separately) so one failure never blocks the rest of a
multi-member join. Referrer notifications go out after commit.
"""
import logging
import time

import config
import database
from aiogram import Bot, F, Router
from aiogram.types import Message

from app.core.structured_logger import log_event
from app.handlers.common.parsing import member_joined_events, member_left_event
from app.services.notifications import fire_and_forget
from app.services.referrals import handle_member_joined, handle_member_left
from app.utils.logging_helpers import classify_error, set_correlation_id

group_router = Router()
logger = logging.getLogger(__name__)


async def _apply(bot: Bot, operation: str, handler, event, correlation_id: str) -> None:
    start_time = time.monotonic()
    try:
        result = await handler(event)
    except Exception as e:
        log_event(
            logger,
            component="referrals",
            operation=operation,
            correlation_id=correlation_id,
            outcome="failed",
            reason=classify_error(e),
            level="error",
        )
        logger.exception(f"MEMBERSHIP_EVENT_FAILED [op={operation}, member={event.member_id}]")
        return

    log_event(
        logger,
        component="referrals",
        operation=operation,
        correlation_id=correlation_id,
        outcome=result.outcome.value,
        duration_ms=int((time.monotonic() - start_time) * 1000),
    )
    fire_and_forget(bot, result.notifications)


@group_router.message(F.new_chat_members, F.chat.id == config.GROUP_CHAT_ID)
async def on_new_chat_members(message: Message, bot: Bot):
    if not database.ensure_db_ready():
        return
    correlation_id = str(message.message_id)
    set_correlation_id(correlation_id)
    for event in member_joined_events(message):
        await _apply(bot, "member_joined", handle_member_joined, event, correlation_id)


@group_router.message(F.left_chat_member, F.chat.id == config.GROUP_CHAT_ID)
async def on_left_chat_member(message: Message, bot: Bot):
    if not database.ensure_db_ready():
        return
    event = member_left_event(message)
    if event is None:
        return
    correlation_id = str(message.message_id)
    set_correlation_id(correlation_id)
    await _apply(bot, "member_left", handle_member_left, event, correlation_id)
