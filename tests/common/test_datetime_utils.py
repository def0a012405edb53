from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.carelink.carelink.common.datetime_utils import (
    day_bounds_utc,
    end_of_week_utc,
    minutes_between,
    parse_iso_datetime,
    round_half_up,
    start_of_week_utc,
    to_iso,
)
from src.carelink.carelink.common.pagination import normalize_page, paginate, parse_sort
from src.carelink.carelink.core.exceptions import ValidationError

UTC = timezone.utc


def test_week_starts_monday_midnight_utc():
    wed = datetime(2025, 3, 5, 14, 30, tzinfo=UTC)
    assert start_of_week_utc(wed) == datetime(2025, 3, 3, tzinfo=UTC)


def test_sunday_last_millisecond_stays_in_week_and_monday_starts_next():
    week_start = datetime(2025, 3, 3, tzinfo=UTC)
    week_end = end_of_week_utc(week_start)
    assert week_end == datetime(2025, 3, 9, 23, 59, 59, 999000, tzinfo=UTC)
    assert start_of_week_utc(week_end) == week_start
    assert start_of_week_utc(week_end + timedelta(milliseconds=1)) == datetime(2025, 3, 10, tzinfo=UTC)


def test_week_bucket_uses_utc_not_local_offset():
    # 01:00 Monday in UTC+10 is still Sunday in UTC.
    local = datetime(2025, 3, 10, 1, 0, tzinfo=timezone(timedelta(hours=10)))
    assert start_of_week_utc(local) == datetime(2025, 3, 3, tzinfo=UTC)


def test_round_half_up():
    assert round_half_up(42.5) == 43
    assert round_half_up(42.49) == 42
    assert round_half_up(0.5) == 1
    assert round_half_up(0) == 0


def test_minutes_between_never_negative():
    a = datetime(2025, 3, 5, 9, 0, tzinfo=UTC)
    assert minutes_between(a, a + timedelta(hours=2)) == 120
    assert minutes_between(a, a - timedelta(minutes=5)) == 0


def test_parse_iso_accepts_z_and_naive_as_utc():
    assert parse_iso_datetime("2025-03-05T09:00:00Z", "start") == datetime(2025, 3, 5, 9, tzinfo=UTC)
    assert parse_iso_datetime("2025-03-05T09:00:00", "start") == datetime(2025, 3, 5, 9, tzinfo=UTC)


@pytest.mark.parametrize("raw", ["", "   ", "not-a-date", None])
def test_parse_iso_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        parse_iso_datetime(raw, "start")


def test_to_iso_uses_z_suffix():
    assert to_iso(datetime(2025, 3, 5, 9, tzinfo=UTC)) == "2025-03-05T09:00:00Z"
    assert to_iso(None) is None


def test_day_bounds():
    start, end = day_bounds_utc(datetime(2025, 3, 5, 17, 45, tzinfo=UTC))
    assert start == datetime(2025, 3, 5, tzinfo=UTC)
    assert end == datetime(2025, 3, 5, 23, 59, 59, 999000, tzinfo=UTC)


def test_normalize_page_clamps_values():
    assert normalize_page(None, None) == (1, 20)
    assert normalize_page(0, 1000) == (1, 100)
    assert normalize_page("x", "y") == (1, 20)


def test_parse_sort_falls_back_to_created_desc():
    s = parse_sort("start:asc")
    assert (s.field, s.descending) == ("start", False)
    s = parse_sort("password:asc")
    assert s.field == "createdAt"
    assert parse_sort(None).descending is True


def test_paginate_envelope():
    out = paginate([1, 2], total=5, page=1, limit=2)
    assert out["data"] == [1, 2]
    assert out["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}
