# -*- coding: utf-8 -*-
"""
I18N lookup for bot texts.
No hardcoded UI strings in handler or service logic.

Language resolution:
- If language not in LANGUAGES -> use DEFAULT_LANGUAGE
- If key missing in requested language -> fallback to English
- If key missing everywhere -> return key (safe fallback, never crash)
"""

import logging

from . import en

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

LANGUAGES = {
    "en": en.LANG,
}


def get_text(language: str, key: str, **kwargs) -> str:
    """
    Get localized text for key in given language.

    Args:
        language: Language code
        key: Dot-separated key (e.g. referral.welcome_new)
        **kwargs: Format placeholders (e.g. name="John" for {name})

    Returns:
        Localized string, optionally formatted. Never raises.
    """
    lang_dict = LANGUAGES.get(language, LANGUAGES[DEFAULT_LANGUAGE])
    text = lang_dict.get(key)

    if text is None and key in LANGUAGES["en"]:
        logger.warning("I18N fallback to EN for key=%s, lang=%s", key, language)
        text = LANGUAGES["en"][key]

    if text is None:
        logger.error("I18N missing key in all languages: %s", key)
        return key

    if kwargs:
        return text.format(**kwargs)
    return text


__all__ = ["get_text", "LANGUAGES", "DEFAULT_LANGUAGE"]
