"""Tests for local-civil date parsing and formatting."""

import time
from datetime import date, datetime, timezone

import pytest

from scantrack.dates import (
    format_date_for_display,
    future_date,
    local_date_string,
    parse_local_date,
    parse_timestamp,
)


@pytest.fixture(params=["UTC", "Asia/Tokyo", "America/Los_Angeles", "Pacific/Kiritimati"])
def host_tz(request, monkeypatch):
    """Run the test under several host timezones."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", request.param)
    time.tzset()
    yield request.param
    monkeypatch.undo()
    time.tzset()


class TestParseLocalDate:
    def test_iso_date_is_local_calendar_day(self, host_tz):
        """YYYY-MM-DD never shifts by a day, whatever the host timezone."""
        assert parse_local_date("2024-03-01") == date(2024, 3, 1)

    def test_round_trip_display(self, host_tz):
        s = "2024-03-01"
        assert format_date_for_display(parse_local_date(s)) == s.replace("-", "/")

    @pytest.mark.parametrize(
        "value",
        [
            "not-a-date", "invalid", "", "   ", None,
            "2024-02-30", "2024-13-01", "2024/03/01",
            "20240301", "2024-W10-1", "2024-03",
        ],
    )
    def test_malformed_returns_none(self, value):
        assert parse_local_date(value) is None

    def test_full_width_digits_rejected(self):
        assert parse_local_date("２０２４-０３-０１") is None

    def test_naive_datetime_string_keeps_its_day(self):
        assert parse_local_date("2024-03-01T10:00:00") == date(2024, 3, 1)

    def test_space_separated_datetime(self):
        assert parse_local_date("2024-03-01 10:00:00") == date(2024, 3, 1)

    def test_date_object_passthrough(self):
        d = date(2024, 1, 5)
        assert parse_local_date(d) is d

    def test_surrounding_whitespace(self):
        assert parse_local_date(" 2024-03-01 ") == date(2024, 3, 1)

    def test_wrong_type_fails_loudly(self):
        with pytest.raises(TypeError):
            parse_local_date(20240301)


class TestParseTimestamp:
    def test_utc_suffix(self):
        ts = parse_timestamp("2024-01-05T12:00:00Z")
        assert ts is not None
        assert ts.tzinfo is not None
        assert ts == datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)

    def test_naive_and_aware_are_comparable(self):
        naive = parse_timestamp("2024-01-05 12:00:00")
        aware = parse_timestamp("2024-01-06T00:00:00+09:00")
        assert naive is not None and aware is not None
        # Must not raise TypeError
        assert (naive < aware) or (naive >= aware)

    def test_fractional_seconds_with_offset(self):
        ts = parse_timestamp("2024-01-05T12:00:00.123456+00:00")
        assert ts == datetime(2024, 1, 5, 12, 0, 0, 123456, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["", None, "yesterday", "2024-01-05T25:00:00"])
    def test_malformed_returns_none(self, value):
        assert parse_timestamp(value) is None


class TestFormatting:
    def test_display_from_string(self):
        assert format_date_for_display("2024-12-31") == "2024/12/31"

    def test_display_from_date(self):
        assert format_date_for_display(date(2024, 3, 1)) == "2024/03/01"

    def test_display_invalid(self):
        assert format_date_for_display("2024-02-30") == ""
        assert format_date_for_display("garbage") == ""
        assert format_date_for_display(None) == ""

    def test_local_date_string(self):
        assert local_date_string(date(2024, 3, 1)) == "2024-03-01"
        assert local_date_string(None) == ""

    def test_future_date(self):
        assert future_date(7, base=date(2024, 1, 28)) == "2024-02-04"
        assert future_date(1, base=date(2024, 12, 31)) == "2025-01-01"
