"""
User command: /start [referrer_id]
"""
import logging
import time

from aiogram import Bot, F, Router
from aiogram.enums import ChatType
from aiogram.filters import CommandObject, CommandStart
from aiogram.types import Message

from app.core.structured_logger import log_event
from app.handlers.common.guards import ensure_db_ready_message
from app.handlers.common.keyboards import get_main_menu_keyboard
from app.handlers.common.parsing import plain_start_event, start_event_from_message
from app.handlers.common.utils import send_group_invite_link
from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text
from app.services.notifications import deliver, fire_and_forget
from app.services.referrals import handle_start
from app.services.referrals.exceptions import InvalidReferralPayloadError
from app.utils.logging_helpers import classify_error, set_correlation_id

user_router = Router()
logger = logging.getLogger(__name__)


@user_router.message(CommandStart(), F.chat.type == ChatType.PRIVATE)
async def cmd_start(message: Message, command: CommandObject, bot: Bot):
    """Обработчик команды /start"""
    if not await ensure_db_ready_message(message):
        return

    set_correlation_id(str(message.message_id))
    telegram_id = message.from_user.id
    keyboard = get_main_menu_keyboard(DEFAULT_LANGUAGE)

    try:
        event = start_event_from_message(message, command.args)
    except InvalidReferralPayloadError:
        logger.info(f"START_INVALID_PAYLOAD [user={telegram_id}, payload={command.args!r}]")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "referral.invalid_link"))
        event = plain_start_event(message)

    start_time = time.monotonic()
    try:
        result = await handle_start(event)
    except Exception as e:
        log_event(
            logger,
            component="referrals",
            operation="start",
            correlation_id=str(message.message_id),
            outcome="failed",
            reason=classify_error(e),
            level="error",
        )
        logger.exception(f"START_FAILED [user={telegram_id}]")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.generic"))
        return

    if result is None:
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "main.welcome"), reply_markup=keyboard)
        return

    log_event(
        logger,
        component="referrals",
        operation="register_referral",
        correlation_id=str(message.message_id),
        outcome=result.outcome.value,
        duration_ms=int((time.monotonic() - start_time) * 1000),
    )

    # Committed: the referred user hears first, the referrer is notified in the background
    await deliver(bot, result.notifications_for(telegram_id), reply_markup=keyboard)
    if result.needs_invite_link:
        await send_group_invite_link(bot, telegram_id, event.first_name)
    fire_and_forget(bot, result.notifications_except(telegram_id))
