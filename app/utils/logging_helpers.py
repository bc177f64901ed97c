"""
Correlation ids for handlers and the broadcast job.

- Handlers: correlation_id = Telegram update_id / message_id when available
- Broadcast: one UUID per run
"""

import uuid
from typing import Optional
from contextvars import ContextVar

_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def generate_correlation_id() -> str:
    """UUID string, e.g. "550e8400-e29b-41d4-a716-446655440000"."""
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def classify_error(exception: Exception) -> str:
    """
    Failure taxonomy for logs.

    Returns:
        "infra_error" | "dependency_error" | "domain_error" | "unexpected_error"
    """
    # Local imports keep this module importable without the heavy stacks
    import asyncpg
    from aiogram.exceptions import TelegramAPIError
    from app.services.referrals.exceptions import ReferralServiceError

    if isinstance(exception, (asyncpg.PostgresError, asyncpg.InterfaceError, ConnectionError, TimeoutError)):
        return "infra_error"
    if isinstance(exception, TelegramAPIError):
        return "dependency_error"
    if isinstance(exception, ReferralServiceError):
        return "domain_error"
    return "unexpected_error"
