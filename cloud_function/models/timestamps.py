"""
Normalization of the point-in-time shapes that reach the backend.

Firestore returns DatetimeWithNanoseconds, the web client JSON-encodes
Timestamps as {seconds, nanoseconds} (or {_seconds, _nanoseconds}), and
older clients sent ISO strings or Date.now() milliseconds. All of them are
converted once, at ingestion, into an aware UTC datetime.
"""
from datetime import datetime, timezone, timedelta
from typing import Any, Optional


def from_datetime(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_timestamp_dict(value: dict) -> Optional[datetime]:
    """Serialized Firestore Timestamp: {seconds, nanoseconds} or {_seconds, _nanoseconds}."""
    seconds = value.get("seconds", value.get("_seconds"))
    if seconds is None:
        return None
    nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
    base = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    return base + timedelta(microseconds=int(nanos) // 1000)


def from_iso_string(value: str) -> Optional[datetime]:
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return from_datetime(datetime.fromisoformat(text))
    except ValueError:
        return None


def from_epoch_millis(value: float) -> datetime:
    """JavaScript Date.now() values."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """Converts any supported representation to an aware UTC datetime (or None)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return from_datetime(value)
    if isinstance(value, dict):
        return from_timestamp_dict(value)
    if isinstance(value, str):
        return from_iso_string(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return from_epoch_millis(value)
    return None


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
