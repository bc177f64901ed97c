"""
Shared handler utilities: display-name sanitizing and the one-time group invite link.
"""
import logging
import re
from typing import Optional

import config
from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text
from app.utils.telegram_safe import safe_send_message

logger = logging.getLogger(__name__)

# Максимальная длина отображаемого имени
MAX_DISPLAY_NAME_LENGTH = 64

# Telegram limits invite link names to 32 characters
MAX_INVITE_LINK_NAME_LENGTH = 32

# Regex для удаления опасных Unicode символов
_DANGEROUS_UNICODE_RE = re.compile(
    r"[\u0000-\u001f"
    r"\u007f-\u009f"
    r"\u200b-\u200f"
    r"\u2028-\u202f"
    r"\u2060-\u2069"
    r"\u206a-\u206f"
    r"\ufeff"
    r"\ufff0-\uffff"
    r"\U000e0000-\U000e007f"
    r"]"
)


def sanitize_display_name(name: Optional[str]) -> Optional[str]:
    """
    Санитизация имени пользователя для безопасного хранения и отображения.

    - Удаляет опасные Unicode символы (RTL override, zero-width, control chars)
    - Обрезает до MAX_DISPLAY_NAME_LENGTH символов
    - Возвращает None если после фильтрации ничего не осталось
    """
    if not name:
        return None

    name = _DANGEROUS_UNICODE_RE.sub("", name).strip()
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        name = name[:MAX_DISPLAY_NAME_LENGTH].rstrip()
    return name or None


async def send_group_invite_link(bot, telegram_id: int, first_name: Optional[str]) -> bool:
    """
    Create a single-use invite link to the contest group and send it.

    The bot must be a group admin with the "invite users" right. On failure the
    user gets an "ask an admin" message instead.

    Returns:
        True if the link was created and sent
    """
    name = i18n_get_text(
        DEFAULT_LANGUAGE,
        "referral.invite_link_name",
        name=first_name or i18n_get_text(DEFAULT_LANGUAGE, "common.user"),
    )[:MAX_INVITE_LINK_NAME_LENGTH]
    try:
        invite = await bot.create_chat_invite_link(
            chat_id=config.GROUP_CHAT_ID,
            member_limit=1,
            name=name,
        )
    except Exception:
        logger.exception(
            f"INVITE_LINK_FAILED [user={telegram_id}] - is the bot an admin with invite permissions?"
        )
        await safe_send_message(bot, telegram_id, i18n_get_text(DEFAULT_LANGUAGE, "referral.invite_link_failed"))
        return False

    sent = await safe_send_message(
        bot,
        telegram_id,
        i18n_get_text(DEFAULT_LANGUAGE, "referral.invite_link", invite_link=invite.invite_link),
    )
    return sent is not None
