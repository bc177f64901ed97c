"""
Admin broadcast endpoint.

POST /admin/broadcast  {"text": "..."}  with header X-Admin-Token.
Runs the broadcast inline and answers with the aggregate counts.
"""
import hmac
import logging

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel, Field, field_validator

import config
import database
import broadcast_service

logger = logging.getLogger(__name__)

router = APIRouter()

# Bot is set from main.py at startup
_bot = None


def setup(bot):
    global _bot
    _bot = bot


class BroadcastRequest(BaseModel):
    text: str = Field(..., max_length=4096)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class BroadcastResponse(BaseModel):
    success_count: int
    failed_count: int


@router.post("/admin/broadcast", response_model=BroadcastResponse)
async def admin_broadcast(
    payload: BroadcastRequest,
    x_admin_token: str | None = Header(default=None),
):
    if not config.ADMIN_API_TOKEN:
        logger.error("ADMIN_API_TOKEN not configured")
        raise HTTPException(status_code=503, detail="Broadcast is disabled")

    if not hmac.compare_digest((x_admin_token or "").encode(), config.ADMIN_API_TOKEN.encode()):
        logger.warning("ADMIN_BROADCAST_UNAUTHORIZED")
        raise HTTPException(status_code=403, detail="Forbidden")

    if _bot is None or not database.DB_READY:
        logger.warning("ADMIN_BROADCAST_SKIP [reason=not_ready]")
        raise HTTPException(status_code=503, detail="Service not ready")

    try:
        result = await broadcast_service.run_broadcast(_bot, payload.text)
    except Exception:
        logger.exception("ADMIN_BROADCAST_FAILED")
        raise HTTPException(status_code=500, detail="Something went wrong, try again")

    return BroadcastResponse(
        success_count=result["success_count"],
        failed_count=result["failed_count"],
    )
