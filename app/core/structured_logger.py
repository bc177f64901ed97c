"""
One log line per lifecycle event (referral transitions, broadcast runs,
update failures, startup/shutdown).

The fields go both into the text, which is all the plain formatter prints,
and into `extra` for handlers that read record attributes. Never pass
message text, tokens or payloads as `reason`.
"""
import logging
from typing import Optional

_TRAILING_FIELDS = ("correlation_id", "reason", "duration_ms")


def log_event(
    logger: logging.Logger,
    *,
    component: str,
    operation: str,
    outcome: str,
    correlation_id: Optional[str] = None,
    duration_ms: Optional[int] = None,
    reason: Optional[str] = None,
    level: str = "info",
    message: Optional[str] = None,
) -> None:
    """
    Log `EVENT <component>.<operation> outcome=<outcome> [correlation_id=..] [reason=..] [duration_ms=..]`.

    `message` replaces the generated text; the fields still land in `extra`.
    """
    fields = {"component": component, "operation": operation, "outcome": outcome}
    if correlation_id is not None:
        fields["correlation_id"] = str(correlation_id)
    if reason is not None:
        fields["reason"] = reason
    if duration_ms is not None:
        fields["duration_ms"] = duration_ms

    if message is None:
        tail = " ".join(f"{key}={fields[key]}" for key in _TRAILING_FIELDS if key in fields)
        message = f"EVENT {component}.{operation} outcome={outcome}" + (f" {tail}" if tail else "")
    logger.log(logging.getLevelName(level.upper()), message, extra=fields)
