"""
Integration tests for database.py query functions against a mocked asyncpg connection.

Tests:
1. Transitions read with row locks and update counts atomically
2. delete_user locks referrals in any state and un-counts an active one before the cascade
3. transaction() acquires, opens the requested isolation and releases
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import database


def make_conn():
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock(return_value="UPDATE 1")
    tx_ctx = MagicMock()
    tx_ctx.__aenter__ = AsyncMock(return_value=None)
    tx_ctx.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = MagicMock(return_value=tx_ctx)
    return conn


def make_pool(conn):
    pool = MagicMock()
    acq = MagicMock()
    acq.__aenter__ = AsyncMock(return_value=conn)
    acq.__aexit__ = AsyncMock(return_value=None)
    pool.acquire.return_value = acq
    return pool


class TestAffectedRows:
    @pytest.mark.parametrize("status, expected", [
        ("UPDATE 1", 1),
        ("DELETE 0", 0),
        ("INSERT 0 1", 1),
        ("", 0),
        (None, 0),
    ])
    def test_status_tags(self, status, expected):
        assert database._affected_rows(status) == expected


class TestReferralQueries:
    @pytest.mark.asyncio
    async def test_lock_referral_uses_row_lock(self):
        conn = make_conn()
        conn.fetchrow = AsyncMock(return_value={"referrer_id": 1, "referred_id": 2, "is_active": False})

        row = await database.lock_referral(conn, 2)

        assert row == {"referrer_id": 1, "referred_id": 2, "is_active": False}
        sql = conn.fetchrow.await_args.args[0]
        assert "FOR UPDATE" in sql

    @pytest.mark.asyncio
    async def test_lock_referral_in_state_filters_on_state(self):
        conn = make_conn()

        row = await database.lock_referral_in_state(conn, 2, is_active=True)

        assert row is None
        sql, referred_id, is_active = conn.fetchrow.await_args.args
        assert "is_active = $2" in sql and "FOR UPDATE" in sql
        assert (referred_id, is_active) == (2, True)

    @pytest.mark.asyncio
    async def test_insert_referral_conflict_reports_false(self):
        conn = make_conn()
        conn.fetchval = AsyncMock(return_value=None)

        assert await database.insert_referral(conn, 1, 2) is False
        assert "ON CONFLICT (referred_id) DO NOTHING" in conn.fetchval.await_args.args[0]

    @pytest.mark.asyncio
    async def test_insert_referral_success(self):
        conn = make_conn()
        conn.fetchval = AsyncMock(return_value=2)

        assert await database.insert_referral(conn, 1, 2) is True

    @pytest.mark.asyncio
    async def test_set_referral_active_only_flips_opposite_state(self):
        conn = make_conn()

        assert await database.set_referral_active(conn, 2, True) is True
        sql, is_active, referred_id, previous = conn.execute.await_args.args
        assert "WHERE referred_id = $2 AND is_active = $3" in sql
        assert (is_active, referred_id, previous) == (True, 2, False)

    @pytest.mark.asyncio
    async def test_set_referral_active_no_row_changed(self):
        conn = make_conn()
        conn.execute = AsyncMock(return_value="UPDATE 0")

        assert await database.set_referral_active(conn, 2, False) is False

    @pytest.mark.asyncio
    async def test_reassign_only_inactive(self):
        conn = make_conn()
        conn.execute = AsyncMock(return_value="UPDATE 0")

        assert await database.reassign_referral(conn, 2, 3) is False
        assert "is_active = FALSE" in conn.execute.await_args.args[0]


class TestCountQueries:
    @pytest.mark.asyncio
    async def test_decrement_is_floored(self):
        conn = make_conn()
        conn.fetchval = AsyncMock(return_value=0)

        assert await database.decrement_referral_count(conn, 1) == 0
        assert "GREATEST(0, referral_count - 1)" in conn.fetchval.await_args.args[0]

    @pytest.mark.asyncio
    async def test_increment_missing_user(self):
        conn = make_conn()
        conn.fetchval = AsyncMock(return_value=None)

        assert await database.increment_referral_count(conn, 1) == 0

    @pytest.mark.asyncio
    async def test_user_rank(self):
        conn = make_conn()
        conn.fetchrow = AsyncMock(return_value={"referral_count": 3, "position": 2})

        assert await database.get_user_rank(conn, 1) == {"referral_count": 3, "position": 2}

    @pytest.mark.asyncio
    async def test_leaderboard_order_and_filter(self):
        conn = make_conn()

        await database.get_leaderboard(conn, 10)

        sql, limit = conn.fetch.await_args.args
        assert "WHERE referral_count > 0" in sql
        assert "ORDER BY referral_count DESC, telegram_id ASC" in sql
        assert limit == 10

    @pytest.mark.asyncio
    async def test_get_or_create_user_drops_inserted_flag(self):
        conn = make_conn()
        conn.fetchrow = AsyncMock(return_value={
            "telegram_id": 1, "username": "ann", "first_name": "Ann",
            "referral_count": 0, "inserted": True,
        })

        user = await database.get_or_create_user(conn, 1, "ann", "Ann")

        assert "inserted" not in user
        assert user["referral_count"] == 0


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_active_referral_uncounted_before_delete(self):
        conn = make_conn()
        conn.fetch = AsyncMock(return_value=[
            {"referrer_id": 10, "referred_id": 20, "is_active": True},
            {"referrer_id": 20, "referred_id": 30, "is_active": True},
        ])
        conn.fetchval = AsyncMock(return_value=0)
        conn.execute = AsyncMock(return_value="DELETE 1")

        with patch("database.get_pool", AsyncMock(return_value=make_pool(conn))):
            deleted = await database.delete_user(20)

        assert deleted is True
        conn.fetchval.assert_awaited_once()
        assert conn.fetchval.await_args.args[1] == 10
        assert conn.execute.await_args.args == ("DELETE FROM users WHERE telegram_id = $1", 20)

    @pytest.mark.asyncio
    async def test_lock_covers_referral_in_any_state(self):
        """A pending row being activated concurrently must be locked and re-read"""
        conn = make_conn()
        conn.execute = AsyncMock(return_value="DELETE 1")

        with patch("database.get_pool", AsyncMock(return_value=make_pool(conn))):
            await database.delete_user(20)

        sql, telegram_id = conn.fetch.await_args.args
        where_clause = sql.split("WHERE", 1)[1]
        assert "is_active" not in where_clause
        assert "FOR UPDATE" in sql
        assert telegram_id == 20

    @pytest.mark.asyncio
    async def test_pending_referral_not_uncounted(self):
        conn = make_conn()
        conn.fetch = AsyncMock(return_value=[{"referrer_id": 10, "referred_id": 20, "is_active": False}])
        conn.execute = AsyncMock(return_value="DELETE 1")

        with patch("database.get_pool", AsyncMock(return_value=make_pool(conn))):
            assert await database.delete_user(20) is True

        conn.fetchval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        conn = make_conn()
        conn.execute = AsyncMock(return_value="DELETE 0")

        with patch("database.get_pool", AsyncMock(return_value=make_pool(conn))):
            deleted = await database.delete_user(20)

        assert deleted is False
        conn.fetchval.assert_not_awaited()


class TestTransaction:
    @pytest.mark.asyncio
    async def test_isolation_and_readonly_forwarded(self):
        conn = make_conn()
        pool = make_pool(conn)

        with patch("database.get_pool", AsyncMock(return_value=pool)):
            async with database.transaction(isolation="repeatable_read", readonly=True) as tx_conn:
                assert tx_conn is conn

        conn.transaction.assert_called_once_with(isolation="repeatable_read", readonly=True)
        pool.acquire.return_value.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exception_propagates_through_transaction(self):
        conn = make_conn()
        pool = make_pool(conn)

        with patch("database.get_pool", AsyncMock(return_value=pool)):
            with pytest.raises(RuntimeError):
                async with database.transaction():
                    raise RuntimeError("boom")

        exit_args = conn.transaction.return_value.__aexit__.await_args.args
        assert exit_args[0] is RuntimeError
        pool.acquire.return_value.__aexit__.assert_awaited_once()
