"""
Referral Service Layer

Referral state machine: pending / active / reassigned transitions and the
referrer counts they drive.
"""

from app.services.referrals.service import (
    register_referral,
    refresh_profile,
    on_member_joined,
    on_member_left,
    handle_start,
    handle_member_joined,
    handle_member_left,
    Notification,
    ReferralOutcome,
    TransitionResult,
)

__all__ = [
    "register_referral",
    "refresh_profile",
    "on_member_joined",
    "on_member_left",
    "handle_start",
    "handle_member_joined",
    "handle_member_left",
    "Notification",
    "ReferralOutcome",
    "TransitionResult",
]
