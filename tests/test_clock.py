from __future__ import annotations

from datetime import datetime, timezone

from fiquest.clock import Clock, to_iso, us_time


def fixed(moment: datetime):
    return lambda: moment


def test_local_reading_in_utc():
    clock = Clock("UTC", now=fixed(datetime(2024, 3, 5, 14, 30, 15, 250000, tzinfo=timezone.utc)))

    local = clock.local()

    assert local.date == "3/5/2024"
    assert local.time == "2:30:15 PM"
    assert local.timezone == "UTC"
    assert local.iso == "2024-03-05T14:30:15.250Z"
    assert local.timestamp == 1709649015250


def test_local_date_follows_zone_but_iso_stays_utc():
    # 02:00 UTC is still the previous evening in New York
    clock = Clock("America/New_York", now=fixed(datetime(2024, 1, 2, 2, 0, 0, tzinfo=timezone.utc)))

    local = clock.local()

    assert local.date == "1/1/2024"
    assert local.time == "9:00:00 PM"
    assert local.timezone == "America/New_York"
    assert local.iso == "2024-01-02T02:00:00.000Z"
    assert clock.filename_date() == "010124"


def test_unknown_zone_falls_back_to_utc():
    clock = Clock("Not/A_Zone", now=fixed(datetime(2024, 6, 1, tzinfo=timezone.utc)))

    assert clock.timezone_info()["offset"] == "UTC+0"
    assert clock.today() == "6/1/2024"


def test_timezone_info_fractional_offset():
    clock = Clock("Asia/Kolkata", now=fixed(datetime(2024, 6, 1, tzinfo=timezone.utc)))

    info = clock.timezone_info()

    assert info == {"timezone": "Asia/Kolkata", "offset": "UTC+5.5", "name": "Kolkata"}


def test_timezone_info_negative_offset_and_name():
    clock = Clock("America/Los_Angeles", now=fixed(datetime(2024, 1, 15, tzinfo=timezone.utc)))

    info = clock.timezone_info()

    assert info["offset"] == "UTC-8"
    assert info["name"] == "Los Angeles"


def test_format_for_display():
    clock = Clock("UTC")

    shown = clock.format_for_display(datetime(2024, 7, 4, 9, 5, tzinfo=timezone.utc))

    assert shown == {"short": "7/4/2024", "long": "Thursday, July 4, 2024", "time": "9:05 AM"}


def test_helpers():
    assert us_time(datetime(2024, 1, 1, 0, 7, 9)) == "12:07:09 AM"
    assert us_time(datetime(2024, 1, 1, 12, 0, 0)) == "12:00:00 PM"
    assert to_iso(datetime(2024, 1, 1, tzinfo=timezone.utc)) == "2024-01-01T00:00:00.000Z"
