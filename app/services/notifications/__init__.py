"""
Notification Service Layer

Best-effort delivery of referral notifications.
"""

from app.services.notifications.service import (
    deliver,
    fire_and_forget,
    drain_pending,
)

__all__ = [
    "deliver",
    "fire_and_forget",
    "drain_pending",
]
