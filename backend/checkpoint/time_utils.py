from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

UTC = timezone.utc

# Sorts below every real timestamp.
OLDEST = datetime.min.replace(tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Coerce the datetime into UTC; naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def iso_timestamp(dt: datetime) -> str:
    """Render an instant as ``2024-01-01T00:00:00.000Z`` (millisecond precision)."""
    value = ensure_utc(dt)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def epoch_millis(dt: datetime) -> int:
    return int(ensure_utc(dt).timestamp() * 1000)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 strings or epoch seconds/milliseconds into an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        divisor = 1000.0 if abs(value) > 1_000_000_000_000 else 1.0
        try:
            return datetime.fromtimestamp(value / divisor, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if stripped.isdigit():
            return parse_timestamp(int(stripped))
        normalized = stripped[:-1] + "+00:00" if stripped.endswith("Z") else stripped
        try:
            return ensure_utc(datetime.fromisoformat(normalized))
        except ValueError:
            return None
    return None
