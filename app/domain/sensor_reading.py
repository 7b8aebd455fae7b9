"""
Sensor Reading
==============
Read-only snapshot reported by a secondary rod. The reading is owned by the
hosting application; this package only consumes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.domain.exceptions import ValidationError
from app.utils.time import coerce_datetime, utc_now

# Order matters: it defines the fingerprint input
SENSOR_FIELDS: tuple[str, ...] = (
    "temperature",
    "moisture",
    "ph",
    "conductivity",
    "nitrogen",
    "phosphorus",
    "potassium",
)

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


@dataclass(frozen=True)
class SensorReading:
    """One timestamped set of soil values from a secondary rod."""

    id: str
    timestamp: datetime
    temperature: float | None = None
    moisture: float | None = None
    ph: float | None = None
    conductivity: float | None = None
    nitrogen: float | None = None
    phosphorus: float | None = None
    potassium: float | None = None
    rod_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SensorReading":
        """Build a reading from an API/DB payload (camelCase or snake_case)."""
        reading_id = data.get("id", data.get("readingId", data.get("reading_id")))
        if reading_id in (None, ""):
            raise ValidationError("Reading id is required")

        raw_ts = data.get("timestamp")
        timestamp = coerce_datetime(raw_ts) if raw_ts is not None else utc_now()
        if timestamp is None:
            raise ValidationError(f"Invalid reading timestamp: {raw_ts!r}")

        values: dict[str, float | None] = {}
        for name in SENSOR_FIELDS:
            raw = data.get(name)
            if raw is None:
                values[name] = None
                continue
            try:
                values[name] = float(raw)
            except (TypeError, ValueError):
                raise ValidationError(f"Sensor value '{name}' must be numeric") from None

        rod_id = data.get("rodId", data.get("rod_id"))
        return cls(
            id=str(reading_id),
            timestamp=timestamp,
            rod_id=str(rod_id) if rod_id is not None else None,
            **values,
        )

    def values(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in SENSOR_FIELDS}

    def age_minutes(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        ts = coerce_datetime(self.timestamp) or now
        return max(0, int((now - ts).total_seconds() // 60))


def _format_value(value: float | None) -> str:
    if value is None:
        return "null"
    # 22.0 and 22 describe the same reading
    return repr(int(value)) if float(value).is_integer() else repr(float(value))


def reading_fingerprint(reading: SensorReading) -> str:
    """FNV-1a (32-bit) over the seven sensor values, as 8 hex digits.

    Used for change detection in logs and stored rows, never as a cache key.
    """
    payload = "|".join(_format_value(getattr(reading, name)) for name in SENSOR_FIELDS)
    digest = _FNV32_OFFSET
    for byte in payload.encode("utf-8"):
        digest ^= byte
        digest = (digest * _FNV32_PRIME) & 0xFFFFFFFF
    return f"{digest:08x}"
