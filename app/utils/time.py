"""UTC time helpers.

In memory every timestamp is an aware UTC datetime. The suggestion table
stores naive-UTC ISO strings with fixed microsecond width (see
storage_timestamp) so that SQL string comparison follows chronological order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat()


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already; aware ones are converted."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def storage_timestamp(dt: datetime) -> str:
    """``2026-05-01T08:00:00.000000``: UTC, no offset, microseconds always present."""
    return as_utc(dt).replace(tzinfo=None).isoformat(timespec="microseconds")


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce a datetime or ISO-8601 string (``Z`` suffix accepted) to aware UTC.

    Returns None for anything unparseable.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None
