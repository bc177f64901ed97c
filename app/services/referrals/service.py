"""
Referral Service - Referral State Machine

States per referred user:

    NoReferral -> Pending -> Active <-> Pending (reassignable)

Rules:
- Self-referral is blocked
- The referrer of a pending referral can be overwritten by any new link,
  an active referral is never reassigned
- Join of a pending referral: is_active = TRUE and referrer count + 1
- Leave of an active referral: is_active = FALSE and referrer count - 1 (floor 0)

The transition functions take an open connection that is already inside a
transaction (database.transaction()); the row lock taken on the referral
serializes concurrent handlers for the same referred user. The handle_*
entry points open their own transactions. Functions never send
messages: notifications come back as values and are delivered by the caller
after commit.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import database
from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text
from app.services.referrals.events import MemberJoinedEvent, MemberLeftEvent, StartEvent
from app.services.referrals.exceptions import ReferralStateConflictError

logger = logging.getLogger(__name__)


class ReferralOutcome(Enum):
    """What a referral operation did"""
    CREATED = "created"  # New pending referral
    REASSIGNED = "reassigned"  # Inactive referral moved to (or re-confirmed for) a referrer
    ALREADY_ACTIVE = "already_active"  # Referred user is counted already; nothing changed
    SELF_REFERRAL = "self_referral"
    UNKNOWN_REFERRER = "unknown_referrer"
    ACTIVATED = "activated"  # Pending -> Active, referrer +1
    DEACTIVATED = "deactivated"  # Active -> Pending, referrer -1
    NO_CHANGE = "no_change"


_STATE_CHANGING = frozenset({
    ReferralOutcome.CREATED,
    ReferralOutcome.REASSIGNED,
    ReferralOutcome.ACTIVATED,
    ReferralOutcome.DEACTIVATED,
})


@dataclass(frozen=True)
class Notification:
    """Best-effort message; delivery failure never affects the committed transition."""
    chat_id: int
    text: str
    kind: str


@dataclass(frozen=True)
class TransitionResult:
    outcome: ReferralOutcome
    referred_id: int
    referrer_id: Optional[int] = None
    referrer_count: Optional[int] = None
    notifications: Tuple[Notification, ...] = ()

    @property
    def state_changed(self) -> bool:
        return self.outcome in _STATE_CHANGING

    @property
    def needs_invite_link(self) -> bool:
        """Referred user should get a one-time group invite link."""
        return self.outcome in (ReferralOutcome.CREATED, ReferralOutcome.REASSIGNED)

    def notifications_for(self, chat_id: int) -> Tuple[Notification, ...]:
        return tuple(n for n in self.notifications if n.chat_id == chat_id)

    def notifications_except(self, chat_id: int) -> Tuple[Notification, ...]:
        return tuple(n for n in self.notifications if n.chat_id != chat_id)


def _display(first_name: Optional[str]) -> str:
    return first_name or i18n_get_text(DEFAULT_LANGUAGE, "common.user")


def _notify(chat_id: int, kind: str, **kwargs) -> Notification:
    return Notification(
        chat_id=chat_id,
        text=i18n_get_text(DEFAULT_LANGUAGE, kind, **kwargs),
        kind=kind,
    )


# ====================================================================================
# RegisterReferral
# ====================================================================================

async def register_referral(
    conn: Any,
    referrer_id: int,
    referred_id: int,
    referred_first_name: Optional[str] = None,
) -> TransitionResult:
    """
    Attach referred_id to referrer_id (start-with-referrer).

    Both users must already exist (get_or_create_user for the referred user;
    the referrer is looked up and rejected if unknown).
    """
    name = _display(referred_first_name)

    if referrer_id == referred_id:
        logger.warning(f"REFERRAL_SELF_ATTEMPT [user_id={referred_id}]")
        return TransitionResult(
            outcome=ReferralOutcome.SELF_REFERRAL,
            referred_id=referred_id,
            notifications=(_notify(referred_id, "referral.self"),),
        )

    referrer = await database.get_user(conn, referrer_id)
    if referrer is None:
        logger.warning(f"REFERRAL_REFERRER_NOT_FOUND [referred={referred_id}, referrer={referrer_id}]")
        return TransitionResult(
            outcome=ReferralOutcome.UNKNOWN_REFERRER,
            referred_id=referred_id,
            notifications=(_notify(referred_id, "referral.invalid_link"),),
        )

    existing = await database.lock_referral(conn, referred_id)

    if existing is None:
        if await database.insert_referral(conn, referrer_id, referred_id):
            logger.info(f"REFERRAL_REGISTERED [referrer={referrer_id}, referred={referred_id}, state=PENDING]")
            return TransitionResult(
                outcome=ReferralOutcome.CREATED,
                referred_id=referred_id,
                referrer_id=referrer_id,
                notifications=(
                    _notify(referred_id, "referral.welcome_new", name=name),
                    _notify(referrer_id, "referral.referrer_pending_new", name=name),
                ),
            )
        # A concurrent transaction inserted the row between our read and insert
        existing = await database.lock_referral(conn, referred_id)
        if existing is None:
            raise ReferralStateConflictError(f"referral for {referred_id} vanished after insert conflict")

    if existing["is_active"]:
        logger.info(
            f"REFERRAL_ALREADY_ACTIVE [referred={referred_id}, "
            f"referrer={existing['referrer_id']}, attempted_referrer={referrer_id}]"
        )
        return TransitionResult(
            outcome=ReferralOutcome.ALREADY_ACTIVE,
            referred_id=referred_id,
            referrer_id=existing["referrer_id"],
            notifications=(_notify(referred_id, "referral.already_active", name=name),),
        )

    if not await database.reassign_referral(conn, referred_id, referrer_id):
        raise ReferralStateConflictError(f"inactive referral for {referred_id} could not be reassigned")

    logger.info(
        f"REFERRAL_REASSIGNED [referred={referred_id}, previous_referrer={existing['referrer_id']}, "
        f"referrer={referrer_id}, state=PENDING]"
    )
    return TransitionResult(
        outcome=ReferralOutcome.REASSIGNED,
        referred_id=referred_id,
        referrer_id=referrer_id,
        notifications=(
            _notify(referred_id, "referral.welcome_returning", name=name),
            _notify(referrer_id, "referral.referrer_pending_returning", name=name),
        ),
    )


# ====================================================================================
# OnMemberJoined / OnMemberLeft
# ====================================================================================

async def on_member_joined(
    conn: Any,
    member_id: int,
    member_first_name: Optional[str] = None,
) -> TransitionResult:
    """Pending -> Active: flag and +1 commit together or not at all."""
    referral = await database.lock_referral_in_state(conn, member_id, is_active=False)
    if referral is None:
        logger.info(f"MEMBER_JOINED_NO_PENDING_REFERRAL [member={member_id}]")
        return TransitionResult(outcome=ReferralOutcome.NO_CHANGE, referred_id=member_id)

    referrer_id = referral["referrer_id"]
    if not await database.set_referral_active(conn, member_id, True):
        raise ReferralStateConflictError(f"referral for {member_id} was not pending under lock")
    new_count = await database.increment_referral_count(conn, referrer_id)

    logger.info(
        f"REFERRAL_ACTIVATED [referrer={referrer_id}, referred={member_id}, referral_count={new_count}]"
    )
    return TransitionResult(
        outcome=ReferralOutcome.ACTIVATED,
        referred_id=member_id,
        referrer_id=referrer_id,
        referrer_count=new_count,
        notifications=(_notify(referrer_id, "referral.referrer_joined", name=_display(member_first_name)),),
    )


async def on_member_left(
    conn: Any,
    member_id: int,
    member_first_name: Optional[str] = None,
) -> TransitionResult:
    """Active -> Pending: flag and -1 (floored at zero) commit together."""
    referral = await database.lock_referral_in_state(conn, member_id, is_active=True)
    if referral is None:
        logger.info(f"MEMBER_LEFT_NO_ACTIVE_REFERRAL [member={member_id}]")
        return TransitionResult(outcome=ReferralOutcome.NO_CHANGE, referred_id=member_id)

    referrer_id = referral["referrer_id"]
    if not await database.set_referral_active(conn, member_id, False):
        raise ReferralStateConflictError(f"referral for {member_id} was not active under lock")
    new_count = await database.decrement_referral_count(conn, referrer_id)

    logger.info(
        f"REFERRAL_DEACTIVATED [referrer={referrer_id}, referred={member_id}, referral_count={new_count}]"
    )
    return TransitionResult(
        outcome=ReferralOutcome.DEACTIVATED,
        referred_id=member_id,
        referrer_id=referrer_id,
        referrer_count=new_count,
        notifications=(_notify(referrer_id, "referral.referrer_left", name=_display(member_first_name)),),
    )


# ====================================================================================
# Event entry points: profile refresh, then the transition, each in its own transaction
# ====================================================================================

async def refresh_profile(user_id: int, username: Optional[str], first_name: Optional[str]) -> None:
    """
    Upsert the acting user and commit.

    Runs ahead of the transition so a transition transaction locks only the
    referral row and the referrer's user row.
    """
    async with database.transaction() as conn:
        await database.get_or_create_user(conn, user_id, username, first_name)


async def handle_start(event: StartEvent) -> Optional[TransitionResult]:
    """
    /start: upsert the user, then register the referral if a referrer is present.

    Returns:
        None for a plain /start, otherwise the registration result
    """
    await refresh_profile(event.user_id, event.username, event.first_name)
    if event.referrer_id is None:
        return None
    async with database.transaction() as conn:
        return await register_referral(conn, event.referrer_id, event.user_id, event.first_name)


async def handle_member_joined(event: MemberJoinedEvent) -> TransitionResult:
    await refresh_profile(event.member_id, event.username, event.first_name)
    async with database.transaction() as conn:
        return await on_member_joined(conn, event.member_id, event.first_name)


async def handle_member_left(event: MemberLeftEvent) -> TransitionResult:
    await refresh_profile(event.member_id, event.username, event.first_name)
    async with database.transaction() as conn:
        return await on_member_left(conn, event.member_id, event.first_name)
