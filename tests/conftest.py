"""
Pytest configuration and shared fixtures.

config.py validates the environment at import time, so the LOCAL_* variables
are set here before any application module is imported.
"""
import os

os.environ["APP_ENV"] = "local"
os.environ.setdefault("LOCAL_BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("LOCAL_GROUP_CHAT_ID", "-1001234567890")
os.environ.setdefault("LOCAL_BOT_USERNAME", "referral_race_bot")
os.environ.setdefault("LOCAL_ADMIN_API_TOKEN", "test-admin-token")

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from fakes import FakeDatabase


# Arbitrary connection handle; the fake store ignores it
CONN = object()


@pytest.fixture
def fake_db():
    """In-memory store patched into every module that talks to `database`"""
    db = FakeDatabase()
    with patch("app.services.referrals.service.database", db), \
         patch("app.services.leaderboard.service.database", db), \
         patch("broadcast_service.database", db):
        yield db


@pytest.fixture
def conn():
    return CONN


@pytest.fixture
def mock_bot():
    """Mock aiogram Bot: every send succeeds"""
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=MagicMock())
    bot.create_chat_invite_link = AsyncMock(
        return_value=MagicMock(invite_link="https://t.me/+one-time-link")
    )
    bot.get_chat_member = AsyncMock()
    return bot
