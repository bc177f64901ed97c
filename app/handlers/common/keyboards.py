"""
ReplyKeyboardMarkup builders. Shared across all handler domains.
"""
from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text


def get_main_menu_keyboard(language: str = DEFAULT_LANGUAGE) -> ReplyKeyboardMarkup:
    """Persistent menu: referral link on the first row, rank and leaderboard below."""
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=i18n_get_text(language, "main.button_link"))],
            [
                KeyboardButton(text=i18n_get_text(language, "main.button_rank")),
                KeyboardButton(text=i18n_get_text(language, "main.button_top")),
            ],
        ],
        resize_keyboard=True,
        one_time_keyboard=False,
    )
