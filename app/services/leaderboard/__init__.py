"""
Leaderboard Service Layer
"""

from app.services.leaderboard.service import (
    get_rank,
    get_leaderboard,
    display_name,
    RankInfo,
    LeaderboardEntry,
    DEFAULT_LEADERBOARD_LIMIT,
)

__all__ = [
    "get_rank",
    "get_leaderboard",
    "display_name",
    "RankInfo",
    "LeaderboardEntry",
    "DEFAULT_LEADERBOARD_LIMIT",
]
