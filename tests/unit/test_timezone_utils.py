"""
Unit tests for timezone helpers (PST/EST conversion with DST)
"""
from datetime import date, datetime, timezone

import pytest

from app.core.timezone_utils import (
    convert_time,
    ensure_utc,
    format_datetime_for_timezone,
    format_time_12hr,
    get_other_timezone,
    get_timezone,
    timezone_label,
)


class TestConvertTime:

    def test_new_york_to_los_angeles(self):
        assert convert_time("14:00", "America/New_York", "America/Los_Angeles", date(2025, 1, 15)) == "11:00"

    def test_los_angeles_to_new_york(self):
        assert convert_time("09:30", "America/Los_Angeles", "America/New_York", date(2025, 7, 1)) == "12:30"

    def test_difference_is_three_hours_across_dst(self):
        # Both zones switch on the same date so the offset stays 3 hours
        assert convert_time("08:00", "America/New_York", "America/Los_Angeles", date(2025, 3, 10)) == "05:00"


class TestFormatting:

    def test_12_hour_clock(self):
        assert format_time_12hr("00:00") == "12:00 AM"
        assert format_time_12hr("06:30") == "6:30 AM"
        assert format_time_12hr("12:00") == "12:00 PM"
        assert format_time_12hr("22:30") == "10:30 PM"

    def test_datetime_for_timezone(self):
        value = datetime(2025, 1, 6, 19, 30, tzinfo=timezone.utc)
        assert format_datetime_for_timezone(value, "America/New_York") == "Mon, Jan 6 at 2:30 PM EST"
        assert format_datetime_for_timezone(value, "America/Los_Angeles") == "Mon, Jan 6 at 11:30 AM PST"

    def test_labels(self):
        assert timezone_label("America/New_York") == "EST"
        assert timezone_label("America/Los_Angeles") == "PST"
        assert get_other_timezone("America/New_York") == "America/Los_Angeles"
        assert get_other_timezone("America/Los_Angeles") == "America/New_York"


def test_ensure_utc_treats_naive_as_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert ensure_utc(None) is None


def test_unknown_timezone_rejected():
    with pytest.raises(ValueError, match="Unknown timezone"):
        get_timezone("Mars/Olympus_Mons")
