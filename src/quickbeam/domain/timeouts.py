"""Expiry and liveness thresholds."""

from datetime import datetime, timedelta


def compute_expires_at(now: datetime, timeout: timedelta) -> datetime:
    """Return the absolute deadline for activity observed at ``now``."""
    return now + timeout


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """Return true once the deadline lies strictly in the past."""
    return expires_at < now


def is_stale(last_seen: datetime | None, now: datetime, threshold: timedelta) -> bool:
    """Return true when a client has been silent for longer than the threshold.

    A client that was never seen is always stale.
    """
    if last_seen is None:
        return True
    return now > last_seen + threshold


def remaining_ms(expires_at: datetime, now: datetime) -> int:
    """Milliseconds left until the deadline, clamped at zero."""
    remaining = (expires_at - now) / timedelta(milliseconds=1)
    return max(0, int(remaining))


def millis(value: int) -> timedelta:
    return timedelta(milliseconds=value)
