"""Time helpers.

All persisted timestamps are timezone-aware UTC. SQLite drops tzinfo on the
way back out, so values read from the store go through ``ensure_utc``.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_for_display(
    dt: datetime,
    timezone_str: str = "UTC",
    fmt: str = "%Y-%m-%d %H:%M %Z",
) -> str:
    """Format a datetime for display in the configured timezone.

    Assumes naive datetimes are UTC.

    Examples:
        >>> utc_dt = datetime(2026, 2, 8, 17, 30, tzinfo=ZoneInfo("UTC"))
        >>> format_for_display(utc_dt, "America/Denver")
        '2026-02-08 10:30 MST'
    """
    tz = ZoneInfo(timezone_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(tz).strftime(fmt)


def parse_local(value: str, timezone_str: str = "UTC", fmt: str = "%Y-%m-%d %H:%M") -> datetime:
    """Parse a user-entered local time into an aware UTC datetime.

    Raises:
        ValueError: If the value does not match ``fmt``.
    """
    naive = datetime.strptime(value.strip(), fmt)
    return naive.replace(tzinfo=ZoneInfo(timezone_str)).astimezone(UTC)
