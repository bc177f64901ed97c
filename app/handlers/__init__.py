"""
Handlers module - Telegram bot handlers.

Root aggregation: group service messages first, then user commands.
"""
from aiogram import Router

from .group import router as group_router
from .user import router as user_router

router = Router()

# Service messages are matched before any text handler
router.include_router(group_router)
router.include_router(user_router)
