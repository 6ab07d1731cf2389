"""Timestamp normalization helpers."""

import datetime


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(raw) -> datetime.datetime | None:
    """Parse an ISO-8601 string (trailing 'Z' allowed) or epoch ms to UTC."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime.datetime):
        return ensure_utc(raw)
    try:
        if isinstance(raw, (int, float)):
            return datetime.datetime.fromtimestamp(raw / 1000, tz=datetime.timezone.utc)
        text = str(raw).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return ensure_utc(datetime.datetime.fromisoformat(text))
    except (ValueError, TypeError, OverflowError, OSError):
        return None
