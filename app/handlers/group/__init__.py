from aiogram import Router

from .membership import group_router as membership_router

router = Router()

router.include_router(membership_router)
