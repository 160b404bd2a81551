"""Tests for pixelai.utils.time_info."""

import datetime

from pixelai.utils.time_info import UNKNOWN_ACTIVITY, parse_timestamp, utc_now

UTC = datetime.timezone.utc


class TestParseTimestamp:
    def test_z_suffix(self):
        assert parse_timestamp("2026-03-01T10:00:00Z") == datetime.datetime(2026, 3, 1, 10, tzinfo=UTC)

    def test_offset_is_converted_to_utc(self):
        assert parse_timestamp("2026-03-01T12:00:00+02:00") == datetime.datetime(2026, 3, 1, 10, tzinfo=UTC)

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-03-01T10:00:00").tzinfo is UTC

    def test_short_fraction(self):
        parsed = parse_timestamp("2026-03-01T10:00:00.5Z")
        assert parsed.microsecond == 500000

    def test_long_fraction_is_cut_to_microseconds(self):
        parsed = parse_timestamp("2026-03-01T10:00:00.1234567Z")
        assert parsed.microsecond == 123456

    def test_epoch_seconds(self):
        assert parse_timestamp(0) == datetime.datetime(1970, 1, 1, tzinfo=UTC)

    def test_unparseable(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None


class TestUnknownActivity:
    def test_sorts_before_any_real_time(self):
        assert UNKNOWN_ACTIVITY < parse_timestamp("1970-01-01T00:00:00Z") < utc_now()
