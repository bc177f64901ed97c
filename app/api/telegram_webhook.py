"""
Telegram webhook endpoint.
Receives updates from Telegram and feeds them to the aiogram Dispatcher.
"""
import asyncio
import logging
from fastapi import APIRouter, Request, Response, Header
from aiogram.types import Update
import config

logger = logging.getLogger(__name__)

router = APIRouter()

# Bot and Dispatcher are set from main.py at startup
_bot = None
_dp = None

HANDLER_TIMEOUT_SECONDS = 25.0


def setup(bot, dp):
    global _bot, _dp
    _bot = bot
    _dp = dp


@router.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
):
    if not config.WEBHOOK_SECRET:
        logger.error("WEBHOOK_SECRET not configured")
        return Response(status_code=503)

    if x_telegram_bot_api_secret_token != config.WEBHOOK_SECRET:
        logger.warning(
            "WEBHOOK_SECRET_MISMATCH ip=%s",
            request.client.host if request.client else "unknown"
        )
        return Response(status_code=403)

    if _dp is None or _bot is None:
        logger.error("WEBHOOK_NOT_READY dispatcher not attached")
        return Response(status_code=503)

    try:
        body = await request.json()
        update = Update.model_validate(body, context={"bot": _bot})
        logger.debug("WEBHOOK_UPDATE update_id=%s", update.update_id)

        try:
            await asyncio.wait_for(
                _dp.feed_webhook_update(_bot, update),
                timeout=HANDLER_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            # 200 anyway: Telegram would otherwise redeliver and re-run the transition
            logger.error(
                "WEBHOOK_HANDLER_TIMEOUT update_id=%s - returning 200 to prevent retry",
                update.update_id
            )
            return Response(status_code=200)
    except Exception as e:
        logger.error("WEBHOOK_PROCESSING_ERROR error=%s", e)
        return Response(status_code=200)

    return Response(status_code=200)
