"""
Unit tests for last-updated marker formatting and parsing
"""

import re
from datetime import timedelta

import pytest

from sqlsess.core.exceptions import TimestampParseError
from sqlsess.core.utils.timestamps import (
    NANOS_PER_SECOND,
    format_timestamp,
    parse_timestamp,
    to_nanoseconds,
    utc_now_ns,
)

pytestmark = pytest.mark.unit


class TestFormat:

    def test_fixed_nanosecond_format(self):
        assert format_timestamp(0) == "1970-01-01T00:00:00.000000000Z"
        assert format_timestamp(1_700_000_000_123_456_789) == "2023-11-14T22:13:20.123456789Z"

    def test_defaults_to_now(self):
        text = format_timestamp()
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{9}Z", text)
        assert abs(parse_timestamp(text) - utc_now_ns()) < 5 * NANOS_PER_SECOND

    def test_text_order_matches_time_order(self):
        stamps = [1_000, 999_999_999, 1_000_000_000, 1_700_000_000_000_000_001]
        texts = [format_timestamp(ns) for ns in stamps]
        assert texts == sorted(texts)


class TestParse:

    def test_round_trip(self):
        ns = 1_700_000_000_123_456_789
        assert parse_timestamp(format_timestamp(ns)) == ns

    @pytest.mark.parametrize("text,expected", [
        ("2023-11-14T22:13:20Z", 1_700_000_000 * NANOS_PER_SECOND),
        ("2023-11-14T22:13:20.5Z", 1_700_000_000 * NANOS_PER_SECOND + 500_000_000),
        ("2023-11-14T23:13:20+01:00", 1_700_000_000 * NANOS_PER_SECOND),
        ("2023-11-14T21:13:20.000000001-01:00", 1_700_000_000 * NANOS_PER_SECOND + 1),
    ])
    def test_accepts_rfc3339_variants(self, text, expected):
        assert parse_timestamp(text) == expected

    @pytest.mark.parametrize("text", [
        "",
        "yesterday",
        "2023-11-14 22:13:20",
        "2023-13-14T22:13:20Z",
        "2023-11-14T22:13:20.1234567890Z",
        "2023-11-14T22:13:20+25:00",
    ])
    def test_rejects_invalid(self, text):
        with pytest.raises(TimestampParseError):
            parse_timestamp(text)

    def test_parse_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_timestamp("not a time")


def test_to_nanoseconds():
    assert to_nanoseconds(timedelta(days=1)) == 86400 * NANOS_PER_SECOND
    assert to_nanoseconds(timedelta(microseconds=3)) == 3000
