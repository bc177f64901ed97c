"""
Telegram update -> inbound event translation.

The only place that reads raw aiogram message fields for the referral flow.
"""
from typing import List, Optional

from aiogram.enums import ChatType
from aiogram.types import Message

from app.handlers.common.utils import sanitize_display_name
from app.services.referrals.events import (
    LeaderboardQueryEvent,
    MemberJoinedEvent,
    MemberLeftEvent,
    RankQueryEvent,
    StartEvent,
    parse_start_payload,
)

GROUP_CHAT_TYPES = (ChatType.GROUP, ChatType.SUPERGROUP)


def start_event_from_message(message: Message, payload: Optional[str]) -> StartEvent:
    """
    Raises:
        InvalidReferralPayloadError: payload present but malformed
    """
    user = message.from_user
    return StartEvent(
        user_id=user.id,
        username=sanitize_display_name(user.username),
        first_name=sanitize_display_name(user.first_name),
        referrer_id=parse_start_payload(payload),
        raw_payload=payload,
    )


def plain_start_event(message: Message) -> StartEvent:
    """StartEvent without a referrer (used after a malformed payload)."""
    user = message.from_user
    return StartEvent(
        user_id=user.id,
        username=sanitize_display_name(user.username),
        first_name=sanitize_display_name(user.first_name),
    )


def member_joined_events(message: Message) -> List[MemberJoinedEvent]:
    """One event per human in new_chat_members; bots are never referrals."""
    return [
        MemberJoinedEvent(
            group_id=message.chat.id,
            member_id=member.id,
            username=sanitize_display_name(member.username),
            first_name=sanitize_display_name(member.first_name),
        )
        for member in (message.new_chat_members or [])
        if not member.is_bot
    ]


def member_left_event(message: Message) -> Optional[MemberLeftEvent]:
    member = message.left_chat_member
    if member is None or member.is_bot:
        return None
    return MemberLeftEvent(
        group_id=message.chat.id,
        member_id=member.id,
        username=sanitize_display_name(member.username),
        first_name=sanitize_display_name(member.first_name),
    )


def rank_event_from_message(message: Message) -> RankQueryEvent:
    return RankQueryEvent(user_id=message.from_user.id)


def leaderboard_event_from_message(message: Message) -> LeaderboardQueryEvent:
    return LeaderboardQueryEvent(
        user_id=message.from_user.id,
        chat_id=message.chat.id,
        is_group_chat=message.chat.type in GROUP_CHAT_TYPES,
    )
