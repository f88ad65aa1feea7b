"""
Test suite for result helpers.

Tests:
- Bucket date formats per interval unit
- Timestamp parsing
- group_by, interval and interval+group_by flattening
"""

import pytest
from datetime import datetime, timezone

from keen_driver import (
    TimeUnit,
    QueryInterval,
    QueryIntervalValue,
    ValidationError,
    interval_date_format,
    parse_timestamp,
    query_result_to_list,
    query_result_to_groups,
    query_result_to_interval,
    query_result_to_interval_groups,
)
from keen_driver.results import stamp_identifier


class TestIntervalDateFormat:

    @pytest.mark.parametrize("unit,expected", [
        (TimeUnit.MINUTE, "%Y-%m-%d-%H-%M"),
        (TimeUnit.HOUR, "%Y-%m-%d-%H"),
        (TimeUnit.DAY, "%Y-%m-%d"),
        (TimeUnit.WEEK, "%Y-%m-%d"),
        (TimeUnit.MONTH, "%Y-%m"),
        (TimeUnit.YEAR, "%Y"),
        (None, ""),
    ])
    def test_formats(self, unit, expected):
        assert interval_date_format(unit) == expected

    def test_accepts_interval(self):
        assert interval_date_format(QueryInterval.hourly()) == "%Y-%m-%d-%H"
        assert interval_date_format(QueryInterval.every_n_months(3)) == "%Y-%m"
        assert interval_date_format(QueryInterval.none()) == ""

    def test_stamp_identifier(self):
        start = datetime(2024, 3, 1, 14, 5, tzinfo=timezone.utc)
        assert stamp_identifier(start, QueryInterval.hourly()) == "2024-03-01-14"
        assert stamp_identifier(start, TimeUnit.MINUTE) == "2024-03-01-14-05"


class TestParseTimestamp:

    def test_zulu_suffix(self):
        parsed = parse_timestamp("2024-03-01T10:00:00.000Z")
        assert parsed == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_offset(self):
        assert parse_timestamp("2024-03-01T10:00:00+01:00").utcoffset().total_seconds() == 3600

    @pytest.mark.parametrize("text", ["", None, "yesterday"])
    def test_invalid(self, text):
        with pytest.raises(ValidationError):
            parse_timestamp(text)


class TestQueryResultToList:

    def test_result_list(self, mock_extraction_response):
        events = query_result_to_list(mock_extraction_response)
        assert [event["item"] for event in events] == ["golden widget", "silver widget"]

    def test_empty_or_missing(self):
        assert query_result_to_list(None) == []
        assert query_result_to_list({}) == []
        assert query_result_to_list({"result": None}) == []


class TestQueryResultToGroups:

    def test_groups(self, mock_group_by_response):
        assert query_result_to_groups(mock_group_by_response, ["country"]) == [
            {"country": "CZ", "count": 12},
            {"country": "DE", "count": 7},
        ]

    def test_property_mapping(self, mock_group_by_response):
        rows = query_result_to_groups(mock_group_by_response, ["country"], {"country": "Country"})
        assert rows[0] == {"Country": "CZ", "count": 12}

    def test_multiple_group_by(self):
        response = {"result": [{"country": "CZ", "platform": "ios", "result": 4}]}

        assert query_result_to_groups(response, ["country", "platform"]) == [
            {"country": "CZ", "platform": "ios", "count": 4}
        ]

    def test_missing_result_counts_as_zero(self):
        response = {"result": [{"country": "CZ", "result": None}]}
        assert query_result_to_groups(response, ["country"])[0]["count"] == 0

    def test_no_group_by(self, mock_group_by_response):
        assert query_result_to_groups(mock_group_by_response, []) == []


class TestQueryResultToInterval:

    def test_buckets(self):
        response = {
            "result": [
                {"timeframe": {"start": "2024-03-01T00:00:00Z", "end": "2024-03-02T00:00:00Z"}, "value": 10},
                {"timeframe": {"start": "2024-03-02T00:00:00Z", "end": "2024-03-03T00:00:00Z"}, "value": 12},
            ]
        }

        values = query_result_to_interval(response, QueryInterval.daily())

        assert values[0] == QueryIntervalValue(
            value=10,
            start=datetime(2024, 3, 1, tzinfo=timezone.utc),
            end=datetime(2024, 3, 2, tzinfo=timezone.utc),
        )
        assert values[1].value == 12

    def test_no_interval(self):
        assert query_result_to_interval({"result": []}, None) == []
        assert query_result_to_interval({"result": []}, QueryInterval.none()) == []


class TestQueryResultToIntervalGroups:

    def test_rows(self, mock_interval_group_response):
        rows = query_result_to_interval_groups(
            mock_interval_group_response, QueryInterval.daily(), ["country"]
        )

        assert rows == [
            {"stamp": "2024-03-01", "country": "CZ", "count": 3},
            {"stamp": "2024-03-01", "country": "DE", "count": 1},
            {"stamp": "2024-03-02", "country": "CZ", "count": 5},
        ]

    def test_monthly_stamp_with_mapping(self, mock_interval_group_response):
        rows = query_result_to_interval_groups(
            mock_interval_group_response, QueryInterval.monthly(), ["country"], {"country": "c"}
        )
        assert rows[0] == {"stamp": "2024-03", "c": "CZ", "count": 3}

    def test_no_group_by(self, mock_interval_group_response):
        assert query_result_to_interval_groups(mock_interval_group_response, QueryInterval.daily(), []) == []
