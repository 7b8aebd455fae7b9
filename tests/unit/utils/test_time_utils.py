from datetime import datetime, timedelta, timezone

import pytest

from app.utils.time import as_utc, coerce_datetime, storage_timestamp, utc_now


def test_coerce_datetime_parses_z_suffix():
    dt = coerce_datetime("2026-01-01T00:00:00Z")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.isoformat().endswith("+00:00")


def test_coerce_datetime_parses_offset():
    dt = coerce_datetime("2026-01-01T02:00:00+02:00")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.hour == 0


def test_coerce_datetime_parses_naive_as_utc():
    dt = coerce_datetime("2026-01-01T00:00:00")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)

    time_diff = utc_now() - dt
    assert isinstance(time_diff, timedelta)


def test_storage_timestamp_is_naive_utc_with_microseconds():
    aware = coerce_datetime("2026-01-01T02:00:00+02:00")

    assert storage_timestamp(aware) == "2026-01-01T00:00:00.000000"
    assert storage_timestamp(coerce_datetime("2026-01-01T00:00:00.500000Z")) == "2026-01-01T00:00:00.500000"


def test_storage_timestamp_sorts_chronologically():
    earlier = storage_timestamp(coerce_datetime("2026-01-01T09:59:59.999999Z"))
    later = storage_timestamp(coerce_datetime("2026-01-01T10:00:00Z"))

    assert earlier < later


@pytest.mark.parametrize("value", ["yesterday", "", 1714550400, None])
def test_coerce_datetime_rejects_unparseable_values(value):
    assert coerce_datetime(value) is None


def test_as_utc_converts_aware_and_tags_naive():
    plus_two = timezone(timedelta(hours=2))

    assert as_utc(datetime(2026, 1, 1, 2, 0, tzinfo=plus_two)) == datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc)
    assert as_utc(datetime(2026, 1, 1, 2, 0)).tzinfo is timezone.utc
