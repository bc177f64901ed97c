"""
Unit tests for rank and leaderboard queries.
"""
import pytest

from app.services.leaderboard import (
    DEFAULT_LEADERBOARD_LIMIT,
    display_name,
    get_leaderboard,
    get_rank,
)


@pytest.fixture
def ranked(fake_db):
    """Counts [5, 5, 3, 0]"""
    fake_db.add_user(1, "ann", "Ann", referral_count=5)
    fake_db.add_user(2, None, "Ben", referral_count=5)
    fake_db.add_user(3, None, None, referral_count=3)
    fake_db.add_user(4, "dan", "Dan", referral_count=0)
    return fake_db


class TestGetRank:
    """Tests for get_rank"""

    @pytest.mark.asyncio
    async def test_competition_ranking(self, ranked, conn):
        """Counts [5, 5, 3, 0] rank as [1, 1, 3, None]"""
        ranks = [(await get_rank(conn, user_id)).rank for user_id in (1, 2, 3, 4)]

        assert ranks == [1, 1, 3, None]

    @pytest.mark.asyncio
    async def test_zero_count_has_no_rank(self, ranked, conn):
        info = await get_rank(conn, 4)

        assert info.referral_count == 0
        assert not info.has_referrals

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_rank(self, ranked, conn):
        info = await get_rank(conn, 999)

        assert info.rank is None
        assert info.referral_count == 0

    @pytest.mark.asyncio
    async def test_rank_reports_count(self, ranked, conn):
        info = await get_rank(conn, 3)

        assert info.user_id == 3
        assert info.referral_count == 3
        assert info.has_referrals


class TestGetLeaderboard:
    """Tests for get_leaderboard"""

    @pytest.mark.asyncio
    async def test_excludes_zero_counts(self, ranked, conn):
        entries = await get_leaderboard(conn)

        assert [e.telegram_id for e in entries] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_ties_ordered_by_telegram_id(self, fake_db, conn):
        fake_db.add_user(30, "c", None, referral_count=2)
        fake_db.add_user(10, "a", None, referral_count=2)
        fake_db.add_user(20, "b", None, referral_count=2)

        entries = await get_leaderboard(conn)

        assert [e.telegram_id for e in entries] == [10, 20, 30]
        assert [e.position for e in entries] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_respects_limit(self, fake_db, conn):
        for user_id in range(1, 16):
            fake_db.add_user(user_id, None, f"u{user_id}", referral_count=user_id)

        entries = await get_leaderboard(conn, DEFAULT_LEADERBOARD_LIMIT)

        assert len(entries) == 10
        assert entries[0].telegram_id == 15
        assert entries[-1].telegram_id == 6

    @pytest.mark.asyncio
    async def test_non_positive_limit_is_empty(self, ranked, conn):
        assert await get_leaderboard(conn, 0) == []

    @pytest.mark.asyncio
    async def test_empty_leaderboard(self, fake_db, conn):
        fake_db.add_user(1, "ann", "Ann")

        assert await get_leaderboard(conn) == []

    @pytest.mark.asyncio
    async def test_display_names(self, ranked, conn):
        entries = await get_leaderboard(conn)

        assert [e.display_name for e in entries] == ["@ann", "Ben", "3"]


class TestDisplayName:
    def test_handle_wins(self):
        assert display_name("ann", "Ann", 1) == "@ann"

    def test_handle_with_at_sign_not_doubled(self):
        assert display_name("@ann", None, 1) == "@ann"

    def test_first_name_fallback(self):
        assert display_name(None, "Ann", 1) == "Ann"

    def test_id_fallback(self):
        assert display_name(None, None, 42) == "42"
