"""
Unit tests for best-effort notification delivery.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError, TelegramRetryAfter

from app.services.notifications import deliver, drain_pending, fire_and_forget
from app.services.referrals import Notification
from app.utils.telegram_safe import safe_send_message


def _forbidden():
    return TelegramForbiddenError(method=MagicMock(), message="Forbidden: bot was blocked by the user")


NOTES = (
    Notification(chat_id=1, text="one", kind="referral.welcome_new"),
    Notification(chat_id=2, text="two", kind="referral.referrer_pending_new"),
)


class TestDeliver:
    @pytest.mark.asyncio
    async def test_sends_in_order(self, mock_bot):
        delivered = await deliver(mock_bot, NOTES)

        assert delivered == 2
        assert [c.args for c in mock_bot.send_message.await_args_list] == [(1, "one"), (2, "two")]

    @pytest.mark.asyncio
    async def test_failed_send_is_dropped(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=[_forbidden(), MagicMock()])

        delivered = await deliver(mock_bot, NOTES)

        assert delivered == 1
        assert mock_bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_send_kwargs_passed_through(self, mock_bot):
        markup = MagicMock()

        await deliver(mock_bot, NOTES[:1], reply_markup=markup)

        mock_bot.send_message.assert_awaited_once_with(1, "one", reply_markup=markup)


class TestFireAndForget:
    @pytest.mark.asyncio
    async def test_nothing_to_send(self, mock_bot):
        assert fire_and_forget(mock_bot, ()) is None

    @pytest.mark.asyncio
    async def test_scheduled_delivery(self, mock_bot):
        task = fire_and_forget(mock_bot, NOTES)

        await task

        assert mock_bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_failures_never_surface(self, mock_bot):
        mock_bot.send_message = AsyncMock(side_effect=RuntimeError("network down"))

        task = fire_and_forget(mock_bot, NOTES)
        await task

        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending(self, mock_bot):
        fire_and_forget(mock_bot, NOTES)

        await drain_pending(timeout=1.0)

        assert mock_bot.send_message.await_count == 2


class TestSafeSendMessage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        TelegramForbiddenError(method=MagicMock(), message="Forbidden: bot was blocked by the user"),
        TelegramRetryAfter(method=MagicMock(), message="Too Many Requests", retry_after=7),
        TelegramBadRequest(method=MagicMock(), message="Bad Request: chat not found"),
        RuntimeError("network down"),
    ])
    async def test_send_failures_return_none(self, mock_bot, error):
        mock_bot.send_message = AsyncMock(side_effect=error)

        assert await safe_send_message(mock_bot, 1, "hello") is None
        mock_bot.send_message.assert_awaited_once_with(1, "hello")

    @pytest.mark.asyncio
    async def test_success_returns_message(self, mock_bot):
        sent = MagicMock()
        mock_bot.send_message = AsyncMock(return_value=sent)

        assert await safe_send_message(mock_bot, 1, "hello", disable_web_page_preview=True) is sent
        mock_bot.send_message.assert_awaited_once_with(1, "hello", disable_web_page_preview=True)
