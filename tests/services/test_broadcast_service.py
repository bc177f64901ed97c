"""
Unit tests for the admin broadcast job.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from aiogram.exceptions import TelegramForbiddenError

import broadcast_service


def _forbidden():
    return TelegramForbiddenError(method=MagicMock(), message="Forbidden: bot was blocked by the user")


def _send_failing_for(failures):
    """send_message that raises failures[chat_id] for the listed chats"""
    async def send_message(chat_id, text, **kwargs):
        if chat_id in failures:
            raise failures[chat_id]
        return MagicMock()
    return AsyncMock(side_effect=send_message)


class TestRunBroadcast:
    @pytest.mark.asyncio
    async def test_blocked_recipient_deleted(self, fake_db, mock_bot):
        """Three users, one blocked: {success: 2, failed: 1}, blocked user removed"""
        for user_id in (1, 2, 3):
            fake_db.add_user(user_id)
        mock_bot.send_message = _send_failing_for({2: _forbidden()})

        result = await broadcast_service.run_broadcast(mock_bot, "Contest ends tonight!", pause_seconds=0)

        assert result["success_count"] == 2
        assert result["failed_count"] == 1
        assert result["deleted_count"] == 1
        assert result["total"] == 3
        assert sorted(fake_db.users) == [1, 3]

    @pytest.mark.asyncio
    async def test_deleting_active_referral_uncounts_referrer(self, fake_db, mock_bot):
        fake_db.add_user(10, referral_count=1)
        fake_db.add_user(20)
        fake_db.add_referral(10, 20, is_active=True)
        mock_bot.send_message = _send_failing_for({20: _forbidden()})

        await broadcast_service.run_broadcast(mock_bot, "hello", pause_seconds=0)

        assert fake_db.count(10) == 0
        assert fake_db.referrals == {}
        assert fake_db.counts_consistent()

    @pytest.mark.asyncio
    async def test_other_errors_fail_without_deletion(self, fake_db, mock_bot):
        for user_id in (1, 2):
            fake_db.add_user(user_id)
        mock_bot.send_message = _send_failing_for({1: RuntimeError("timeout")})

        result = await broadcast_service.run_broadcast(mock_bot, "hello", pause_seconds=0)

        assert result["success_count"] == 1
        assert result["failed_count"] == 1
        assert result["deleted_count"] == 0
        assert sorted(fake_db.users) == [1, 2]

    @pytest.mark.asyncio
    async def test_delete_error_does_not_stop_run(self, fake_db, mock_bot):
        for user_id in (1, 2):
            fake_db.add_user(user_id)
        fake_db.delete_user = AsyncMock(side_effect=RuntimeError("db down"))
        mock_bot.send_message = _send_failing_for({1: _forbidden()})

        result = await broadcast_service.run_broadcast(mock_bot, "hello", pause_seconds=0)

        assert result["success_count"] == 1
        assert result["failed_count"] == 1
        assert result["deleted_count"] == 0

    @pytest.mark.asyncio
    async def test_pauses_after_every_batch(self, fake_db, mock_bot):
        """5 recipients, batch of 2: pause after the 2nd and 4th send, not after the last"""
        for user_id in range(1, 6):
            fake_db.add_user(user_id)

        with patch("broadcast_service.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await broadcast_service.run_broadcast(mock_bot, "hello", batch_size=2, pause_seconds=1.5)

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(1.5)

    @pytest.mark.asyncio
    async def test_no_recipients(self, fake_db, mock_bot):
        result = await broadcast_service.run_broadcast(mock_bot, "hello", pause_seconds=0)

        assert result["total"] == 0
        assert result["success_count"] == 0
        mock_bot.send_message.assert_not_awaited()
