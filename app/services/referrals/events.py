"""
Inbound event types consumed by the referral core.

Handlers translate Telegram updates into these values once, at the transport
boundary; the services never look at raw update payloads.
"""

from dataclasses import dataclass
from typing import Optional, Union

from app.services.referrals.exceptions import InvalidReferralPayloadError


@dataclass(frozen=True)
class StartEvent:
    user_id: int
    username: Optional[str]
    first_name: Optional[str]
    referrer_id: Optional[int] = None
    raw_payload: Optional[str] = None


@dataclass(frozen=True)
class MemberJoinedEvent:
    group_id: int
    member_id: int
    username: Optional[str]
    first_name: Optional[str]


@dataclass(frozen=True)
class MemberLeftEvent:
    group_id: int
    member_id: int
    username: Optional[str]
    first_name: Optional[str]


@dataclass(frozen=True)
class RankQueryEvent:
    user_id: int


@dataclass(frozen=True)
class LeaderboardQueryEvent:
    user_id: int
    chat_id: int
    is_group_chat: bool


InboundEvent = Union[
    StartEvent,
    MemberJoinedEvent,
    MemberLeftEvent,
    RankQueryEvent,
    LeaderboardQueryEvent,
]


def parse_start_payload(payload: Optional[str]) -> Optional[int]:
    """
    Parse the deep-link payload of /start into a referrer id.

    Returns:
        None when there is no payload (plain /start)

    Raises:
        InvalidReferralPayloadError: payload present but not a positive decimal id
    """
    if payload is None:
        return None
    payload = payload.strip()
    if not payload:
        return None
    if not (payload.isascii() and payload.isdigit()):
        raise InvalidReferralPayloadError(f"start payload is not a user id: {payload[:32]!r}")
    referrer_id = int(payload)
    if referrer_id <= 0:
        raise InvalidReferralPayloadError("start payload must be a positive user id")
    return referrer_id


def build_referral_link(base_url: str, bot_username: str, referrer_id: int) -> str:
    """<base_url>/<bot_username>?start=<referrer_id>"""
    return f"{base_url.rstrip('/')}/{bot_username.lstrip('@')}?start={referrer_id}"
