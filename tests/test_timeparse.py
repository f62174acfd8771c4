import math
from datetime import datetime

import pytest

from impedance_analysis.timeparse import (
    elapsed_seconds,
    fraction_to_milliseconds,
    parse_absolute_timestamp,
    parse_duration_string,
)


def test_parse_full_timestamp_with_fraction():
    ts = parse_absolute_timestamp("25/12/2023 14:30:15.5")
    assert ts == datetime(2023, 12, 25, 14, 30, 15, 500000)


def test_parse_timestamp_without_seconds():
    assert parse_absolute_timestamp("01/02/2024 08:05") == datetime(2024, 2, 1, 8, 5)


def test_fraction_is_padded_or_truncated_to_milliseconds():
    assert fraction_to_milliseconds("5") == 500
    assert fraction_to_milliseconds("05") == 50
    assert fraction_to_milliseconds("123456") == 123
    ts = parse_absolute_timestamp("01/01/2024 00:00:01.98765")
    assert ts.microsecond == 987000


@pytest.mark.parametrize("text", [
    "2024-01-01 10:00:00",
    "25/12/2023",
    "25/12/2023 14",
    "25/12/2023 14:30:15:01",
    "aa/12/2023 14:30:00",
    "25/12/2023 14:xx:00",
    "25/12/2023  14:30:00",
    "",
    None,
])
def test_invalid_timestamps_return_none(text):
    assert parse_absolute_timestamp(text) is None


def test_timestamp_round_trip():
    for original in [datetime(2024, 3, 9, 23, 59, 58, 100000),
                     datetime(1999, 12, 31, 0, 0, 0),
                     datetime(2024, 2, 29, 12, 1, 2, 700000)]:
        text = original.strftime("%d/%m/%Y %H:%M:%S") + f".{original.microsecond // 100000}"
        assert parse_absolute_timestamp(text) == original


def test_duration_hours_minutes_seconds():
    assert parse_duration_string("01:30:00") == pytest.approx(90.0)
    assert parse_duration_string("00:00:30.0") == pytest.approx(0.5)


def test_duration_minutes_seconds():
    assert parse_duration_string("05:30") == pytest.approx(5.5)
    assert parse_duration_string("00:15.5") == pytest.approx(15.5 / 60)


@pytest.mark.parametrize("text", ["1:2:3:4", "abc", "", "12", "aa:10", None])
def test_bad_durations_are_nan(text):
    assert math.isnan(parse_duration_string(text))


def test_elapsed_seconds():
    t0 = parse_absolute_timestamp("01/01/2024 10:00:00.0")
    t1 = parse_absolute_timestamp("01/01/2024 10:01:30.5")
    assert elapsed_seconds(t0, t1) == pytest.approx(90.5)
    assert math.isnan(elapsed_seconds(None, t1))
