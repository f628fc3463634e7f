"""Time and timezone utilities."""

from datetime import datetime, timezone, timedelta


def utcnow() -> datetime:
    """Get current time in UTC."""
    return datetime.now(timezone.utc)


def normalize_timezone(dt: datetime, target_tz: timezone = timezone.utc) -> datetime:
    """
    Normalize datetime to target timezone.

    Naive datetimes (SQLite hands those back) are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(target_tz)


def is_recent(dt: datetime, window: timedelta, now: datetime = None) -> bool:
    """Check if ``dt`` is strictly less than ``window`` older than ``now``."""
    now = normalize_timezone(now or utcnow())
    return now - normalize_timezone(dt) < window


def window_start(hours: int, now: datetime = None) -> datetime:
    """Start of a trailing window of ``hours`` ending at ``now``."""
    return normalize_timezone(now or utcnow()) - timedelta(hours=hours)


def format_timestamp(dt: datetime, now: datetime = None) -> str:
    """Short relative timestamp for feed display ("now", "5m", "3h", "Oct 2")."""
    now = normalize_timezone(now or utcnow())
    seconds = (now - normalize_timezone(dt)).total_seconds()

    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h"
    return f"{dt.strftime('%b')} {dt.day}"
