"""UTC time helpers shared by services and routers."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def millis_between(earlier: datetime, later: datetime) -> int:
    """Whole milliseconds from ``earlier`` to ``later`` (negative if reversed)."""
    delta = ensure_utc(later) - ensure_utc(earlier)  # type: ignore[operator]
    return int(delta.total_seconds() * 1000)


def time_remaining_ms(end_time: datetime, now: datetime | None = None) -> int:
    """Milliseconds until ``end_time``, floored at zero."""
    if now is None:
        now = utcnow()
    return max(0, millis_between(now, end_time))


def format_time_remaining(ms: int) -> str:
    """Render a countdown as '5h 3m 12s', or 'Competition ended' once it reaches zero."""
    if ms <= 0:
        return "Competition ended"
    hours = ms // (1000 * 60 * 60)
    minutes = (ms % (1000 * 60 * 60)) // (1000 * 60)
    seconds = (ms % (1000 * 60)) // 1000
    return f"{hours}h {minutes}m {seconds}s"
