"""
Test suite for integration helpers.
"""

import pytest
from datetime import datetime

from keen_driver import (
    ValidationError,
    timezone_name_to_offset_seconds,
    to_query_time_frame,
)


class TestTimezoneOffset:
    """Test IANA zone name to standard offset conversion."""

    @pytest.mark.parametrize("name,expected", [
        ("UTC", 0),
        ("Europe/Prague", 3600),
        ("America/New_York", -5 * 3600),
        ("Asia/Kolkata", 19800),
        ("Australia/Sydney", 10 * 3600),
    ])
    def test_standard_offset(self, name, expected):
        assert timezone_name_to_offset_seconds(name) == expected

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_blank_is_utc(self, name):
        assert timezone_name_to_offset_seconds(name) == 0

    def test_unknown_zone(self):
        with pytest.raises(ValidationError):
            timezone_name_to_offset_seconds("Mars/Olympus_Mons")


class TestToQueryTimeFrame:
    """Test time frame construction from an optional date range."""

    def test_absolute_when_both_stamps(self):
        timeframe = to_query_time_frame(datetime(2024, 1, 1), datetime(2024, 1, 8))

        assert timeframe.is_absolute
        assert timeframe.start == datetime(2024, 1, 1)

    def test_last_n_days(self):
        assert str(to_query_time_frame(last_n_days=30)) == "this_30_days"

    def test_defaults_to_seven_days(self):
        assert str(to_query_time_frame()) == "this_7_days"
        assert str(to_query_time_frame(last_n_days=0)) == "this_7_days"

    def test_only_start_falls_back_to_relative(self):
        assert str(to_query_time_frame(start=datetime(2024, 1, 1), last_n_days=3)) == "this_3_days"
