"""
Notification delivery for referral transitions.

Delivery happens only after the transition's transaction has committed and
is best-effort: each failed send is logged and dropped, never retried and
never reported to the handler that triggered it.
"""

import asyncio
import logging
from typing import Iterable, Optional, Set

from app.services.referrals.service import Notification
from app.utils.telegram_safe import safe_send_message

logger = logging.getLogger(__name__)

# Strong references so scheduled sends are not garbage-collected mid-flight
_pending_tasks: Set[asyncio.Task] = set()


async def deliver(bot, notifications: Iterable[Notification], **send_kwargs) -> int:
    """
    Send notifications in order, awaiting each one.

    Returns:
        Number of notifications delivered
    """
    delivered = 0
    for notification in notifications:
        sent = await safe_send_message(bot, notification.chat_id, notification.text, **send_kwargs)
        if sent is not None:
            delivered += 1
            logger.info(
                f"NOTIFICATION_SENT [kind={notification.kind}, chat_id={notification.chat_id}]"
            )
        else:
            logger.info(
                f"NOTIFICATION_DROPPED [kind={notification.kind}, chat_id={notification.chat_id}]"
            )
    return delivered


def fire_and_forget(bot, notifications: Iterable[Notification]) -> Optional[asyncio.Task]:
    """
    Schedule delivery on the running loop and return immediately.

    Returns:
        The scheduled task (tests may await it), or None if there is nothing to send
    """
    batch = tuple(notifications)
    if not batch:
        return None
    task = asyncio.create_task(_deliver_quietly(bot, batch))
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)
    return task


async def _deliver_quietly(bot, batch) -> None:
    try:
        await deliver(bot, batch)
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("NOTIFICATION_BATCH_FAILED")


async def drain_pending(timeout: float = 5.0) -> None:
    """Wait for scheduled notifications on shutdown."""
    if not _pending_tasks:
        return
    done, pending = await asyncio.wait(set(_pending_tasks), timeout=timeout)
    if pending:
        logger.warning(f"NOTIFICATIONS_ABANDONED_ON_SHUTDOWN count={len(pending)}")
