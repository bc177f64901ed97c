from aiogram import Router

from .start import user_router as start_router
from .referrals import user_router as referrals_router

router = Router()

router.include_router(start_router)
router.include_router(referrals_router)
