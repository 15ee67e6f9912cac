#!/usr/bin/python3

import pytest
from qualitymuncher.models.ffmpeg import TelemetryRecord


@pytest.mark.parametrize(
    "chunk, expected_time",
    [
        ("time=00:00:01.00", 1.0),
        ("out_time=00:01:02.500000", 62.5),
        ("time=01:01:01.25", 3661.25),
        ("time=00:00:03", 3.0),
        ("frame=  42 fps=12.0 q=-1.0 size=N/A time=00:00:04.20 bitrate=N/A speed=1.1x", 4.2),
    ],
)
def test_time_marker(chunk: str, expected_time: float):
    record = TelemetryRecord.from_chunk(chunk)
    assert record.time == pytest.approx(expected_time)


@pytest.mark.parametrize(
    "chunk",
    [
        "out_time=N/A",
        "out_time=-00:00:00.040000",
        "out_time_us=1000000",
        "out_time_ms=1000000",
    ],
)
def test_time_marker_not_matched(chunk: str):
    assert TelemetryRecord.from_chunk(chunk).time is None


@pytest.mark.parametrize(
    "chunk, expected_frame",
    [
        ("frame=10", 10),
        ("frame=  42 fps=12.0", 42),
        ("drop_frames=3", None),
        ("dup_frames=7", None),
        ("frame=N/A", None),
    ],
)
def test_frame_marker(chunk: str, expected_frame: int | None):
    assert TelemetryRecord.from_chunk(chunk).frame == expected_frame


def test_speed_marker():
    assert TelemetryRecord.from_chunk("speed=1.0x").speed_seen
    assert TelemetryRecord.from_chunk("speed=N/A").speed_seen
    assert not TelemetryRecord.from_chunk("bitrate=12.3kbits/s").speed_seen


def test_unrecognized_keys_are_empty():
    assert TelemetryRecord.from_chunk("progress=continue").empty
    assert TelemetryRecord.from_chunk("bitrate=N/A").empty
    assert not TelemetryRecord.from_chunk("frame=1").empty
