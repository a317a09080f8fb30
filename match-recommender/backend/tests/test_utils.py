from __future__ import annotations

from datetime import date, datetime, timezone

from utils import haversine_miles, mask_secret, parse_datetime, parse_day


def test_haversine_london_paris() -> None:
    miles = haversine_miles(51.5074, -0.1278, 48.8566, 2.3522)
    assert 205 < miles < 220


def test_haversine_same_point_is_zero() -> None:
    assert haversine_miles(48.85, 2.35, 48.85, 2.35) == 0.0


def test_parse_datetime_handles_zulu_and_naive() -> None:
    assert parse_datetime("2026-01-03T20:00:00Z") == datetime(2026, 1, 3, 20, tzinfo=timezone.utc)
    assert parse_datetime("2026-01-03") == datetime(2026, 1, 3, tzinfo=timezone.utc)
    assert parse_datetime("not a date") is None
    assert parse_datetime(None) is None


def test_parse_day_uses_utc_calendar_day() -> None:
    assert parse_day("2026-01-03T23:30:00-02:00") == date(2026, 1, 4)
    assert parse_day(date(2026, 1, 5)) == date(2026, 1, 5)


def test_mask_secret() -> None:
    assert mask_secret(None) == "unset"
    assert mask_secret("abcdefghijkl") == "abcd...ijkl"
