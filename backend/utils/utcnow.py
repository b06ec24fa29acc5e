"""UTC helpers.

Every timestamp that flows through the conflict feed is an *aware* UTC
datetime.  Upstream providers hand us naive values, offsets in other
zones and epoch numbers; these helpers funnel all of them to one form.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def utcfromtimestamp(ts: float) -> datetime:
    """Convert a POSIX timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None).isoformat() + "Z"
