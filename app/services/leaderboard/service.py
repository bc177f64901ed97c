"""
Leaderboard Service - rank and top-N projections over users.referral_count.

Read-only. Callers run both queries inside
database.transaction(isolation="repeatable_read", readonly=True) so each
answer comes from one snapshot and never sees a half-committed transition.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

import database

DEFAULT_LEADERBOARD_LIMIT = 10


@dataclass(frozen=True)
class RankInfo:
    user_id: int
    referral_count: int
    rank: Optional[int]  # None -> "no referrals yet"

    @property
    def has_referrals(self) -> bool:
        return self.rank is not None


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    telegram_id: int
    display_name: str
    referral_count: int


def display_name(username: Optional[str], first_name: Optional[str], telegram_id: int) -> str:
    """@handle when the user has one, else first name, else the numeric id."""
    if username:
        return f"@{username.lstrip('@')}"
    if first_name:
        return first_name
    return str(telegram_id)


async def get_rank(conn: Any, user_id: int) -> RankInfo:
    """
    Competition rank among all users by referral_count descending.

    Counts [5, 5, 3, 0] give ranks [1, 1, 3, None]: zero-count and unknown
    users get no numeric rank.
    """
    row = await database.get_user_rank(conn, user_id)
    if row is None or row["referral_count"] <= 0:
        count = row["referral_count"] if row else 0
        return RankInfo(user_id=user_id, referral_count=max(count, 0), rank=None)
    return RankInfo(user_id=user_id, referral_count=row["referral_count"], rank=row["position"])


async def get_leaderboard(conn: Any, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> List[LeaderboardEntry]:
    """Top `limit` users with count > 0. Empty list means the leaderboard is empty."""
    if limit <= 0:
        return []
    rows = await database.get_leaderboard(conn, limit)
    return [
        LeaderboardEntry(
            position=index,
            telegram_id=row["telegram_id"],
            display_name=display_name(row.get("username"), row.get("first_name"), row["telegram_id"]),
            referral_count=row["referral_count"],
        )
        for index, row in enumerate(rows[:limit], start=1)
    ]
