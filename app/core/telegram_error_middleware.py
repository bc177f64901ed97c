"""
Global Telegram update error boundary middleware.

Ensures no handler exception can crash update processing (polling or webhook).
Never swallows CancelledError.
"""
import asyncio
import logging
from typing import Callable, Awaitable, Dict, Any, Optional

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramForbiddenError, TelegramBadRequest
from aiogram.types import Message, Update

from app.core.structured_logger import log_event
from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text
from app.utils.logging_helpers import classify_error, get_correlation_id

logger = logging.getLogger(__name__)


def _message_of(event: Any) -> Optional[Message]:
    if isinstance(event, Message):
        return event
    if isinstance(event, Update):
        return event.message
    return None


class TelegramErrorBoundaryMiddleware(BaseMiddleware):
    """
    Wraps handler execution in a strict error boundary.

    TelegramForbiddenError (user blocked bot / bot removed from chat): debug log, return.
    TelegramBadRequest: warning, return.
    Anything else: structured error log plus a best-effort generic reply in
    private chats, return None.
    """

    async def __call__(
        self,
        handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
        event: Any,
        data: Dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except asyncio.CancelledError:
            raise
        except TelegramForbiddenError as e:
            logger.debug("TelegramForbiddenError (user blocked bot or removed from chat): %s", e)
            return None
        except TelegramBadRequest as e:
            logger.warning("TelegramBadRequest: %s", e)
            return None
        except Exception as e:
            message = _message_of(event)
            correlation_id = str(event.update_id) if isinstance(event, Update) else get_correlation_id()
            user_id = message.from_user.id if message is not None and message.from_user else None

            log_event(
                logger,
                component="telegram",
                operation="update_processing",
                correlation_id=correlation_id,
                outcome="failed",
                reason=classify_error(e),
                level="error",
            )
            logger.exception("UNHANDLED_HANDLER_EXCEPTION", extra={"update_type": type(event).__name__, "user_id": user_id})

            # Group chats stay quiet
            if message is not None and message.chat.type == "private":
                try:
                    await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "errors.generic"))
                except Exception as send_error:
                    logger.debug("Error boundary reply failed: %s", send_error)

            return None
