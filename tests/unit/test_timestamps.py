"""
Unit tests for service timestamp parsing
"""
from datetime import datetime, timezone

import pytest

from teampulse.core.errors import InvalidTimestampError
from teampulse.services.normalization.timestamps import (
    is_missing,
    parse_epoch_millis,
    parse_epoch_seconds,
    parse_iso,
    parse_timestamp,
)


def test_slack_decimal_string_epoch():
    parsed = parse_epoch_seconds("1704708000.000100")
    assert parsed == datetime(2024, 1, 8, 10, 0, 0, 100, tzinfo=timezone.utc)


def test_epoch_millis():
    assert parse_epoch_millis(1704708000000) == datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc)


def test_auto_detects_millis():
    assert parse_timestamp(1704708000000) == parse_timestamp(1704708000)


def test_iso_with_z_suffix_and_graph_precision():
    # Graph sends 7 fractional digits, which fromisoformat rejects on older Pythons
    parsed = parse_iso("2024-01-08T10:00:00.1234567Z")
    assert parsed == datetime(2024, 1, 8, 10, 0, 0, 123456, tzinfo=timezone.utc)


def test_naive_iso_uses_given_zone():
    parsed = parse_iso("2024-01-08T19:00:00", tz_name="Asia/Tokyo")
    assert parsed == datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("zone,hour", [
    ("Tokyo Standard Time", 1),
    ("Pacific Standard Time", 18),
    ("W. Europe Standard Time", 9),
    ("UTC", 10),
])
def test_windows_zone_names_are_mapped(zone, hour):
    # Graph returns Windows names when the Prefer: outlook.timezone header is set
    parsed = parse_iso("2024-01-08T10:00:00.0000000", "start", zone)
    assert parsed.hour == hour
    assert parsed.utcoffset().total_seconds() == 0


def test_unknown_zone_is_rejected():
    with pytest.raises(InvalidTimestampError) as exc:
        parse_iso("2024-01-08T10:00:00", "start", "Mars Standard Time")
    assert exc.value.field == "start time zone"


def test_zone_is_ignored_for_aware_values():
    parsed = parse_iso("2024-01-08T10:00:00Z", tz_name="Mars Standard Time")
    assert parsed == datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc)


def test_date_only_is_midnight_utc():
    assert parse_iso("2024-01-08") == datetime(2024, 1, 8, tzinfo=timezone.utc)


def test_offsets_are_converted_to_utc():
    parsed = parse_iso("2024-01-08T19:00:00+09:00")
    assert parsed.utcoffset().total_seconds() == 0
    assert parsed.hour == 10


@pytest.mark.parametrize("value", ["yesterday", "2024-13-45", "", "nan", True, {"a": 1}, float("inf")])
def test_unparseable_values_raise(value):
    with pytest.raises(InvalidTimestampError):
        parse_timestamp(value)


@pytest.mark.parametrize("value,expected", [(None, True), ("", True), ("  ", True), (0, False), ("0", False)])
def test_is_missing(value, expected):
    assert is_missing(value) is expected
