#!/usr/bin/python3

import pytest
from qualitymuncher.util.timefmt import format_seconds, trim_time


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "00:00:00.0"),
        (3661.25, "01:01:01.2"),
        (59.97, "00:01:00.0"),
        (754.3, "00:12:34.3"),
        (36_000, "10:00:00.0"),
        (-3, "00:00:00.0"),
    ],
)
def test_format_seconds(seconds: float, expected: str):
    assert format_seconds(seconds) == expected


@pytest.mark.parametrize(
    "formatted, expected",
    [
        ("00:00:00.0", "0.0s"),
        ("00:00:05.3", "5.3s"),
        ("00:00:15.3", "15.3s"),
        ("00:01:05.0", "01:05.0s"),
        ("01:00:00.0", "01:00:00.0s"),
        # already suffixed times are not suffixed twice
        ("00:00:07.5s", "7.5s"),
    ],
)
def test_trim_time(formatted: str, expected: str):
    assert trim_time(formatted) == expected


def test_trim_zero_keeps_seconds():
    trimmed = trim_time(format_seconds(0))
    assert trimmed
    assert trimmed.endswith("s")
    assert trimmed == "0.0s"
