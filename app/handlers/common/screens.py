"""
Text screens for rank and leaderboard replies (HTML parse mode).
"""
import html
from typing import List

from app.i18n import DEFAULT_LANGUAGE, get_text as i18n_get_text
from app.services.leaderboard import LeaderboardEntry, RankInfo


def render_rank(info: RankInfo, language: str = DEFAULT_LANGUAGE) -> str:
    if not info.has_referrals:
        return i18n_get_text(language, "rank.none")
    return i18n_get_text(language, "rank.summary", count=info.referral_count, rank=info.rank)


def render_leaderboard(entries: List[LeaderboardEntry], limit: int, language: str = DEFAULT_LANGUAGE) -> str:
    if not entries:
        return i18n_get_text(language, "leaderboard.empty")
    lines = [i18n_get_text(language, "leaderboard.title", limit=limit), ""]
    for entry in entries:
        lines.append(i18n_get_text(
            language,
            "leaderboard.row",
            position=entry.position,
            name=html.escape(entry.display_name),
            count=entry.referral_count,
        ))
    return "\n".join(lines)
