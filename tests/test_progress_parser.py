#!/usr/bin/python3

import asyncio
import math
import pathlib
import re
import time

import pytest
from qualitymuncher.models import messages as msgtypes
from qualitymuncher.models.job import EncodingJob
from qualitymuncher.output import AnsiMessageHandler
from qualitymuncher.progress import ProgressParser, estimate_remaining


def _job(total_duration: float = 100.0, bar_width: int | None = 20) -> EncodingJob:
    return EncodingJob(
        input_path=pathlib.Path("input.mp4"),
        output_path=pathlib.Path("output.mp4"),
        total_duration=total_duration,
        bar_width=bar_width,
    )


async def _consume(parser: ProgressParser, data: bytes) -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    await parser.consume(reader)


def test_estimate_remaining():
    assert estimate_remaining(10.0, 25.0, 100.0) == pytest.approx(30.0)
    assert estimate_remaining(10.0, 0.0, 100.0) == 0.0


def test_single_stats_line_per_report(capsys, monkeypatch):
    monkeypatch.setenv("COLUMNS", "120")
    parser = ProgressParser(_job(bar_width=None), AnsiMessageHandler())
    parser.state.job_start_clock = time.monotonic() - 2.0

    parser.begin()
    parser.feed("frame=10\r")
    parser.feed("time=00:00:01.00\rframe=10\rspeed=1.0x\r")

    output = capsys.readouterr().out
    assert output.count("fp1s:") == 1
    # the initial placeholder line and the stats line are the only newlines
    assert output.count("\n") == 2
    assert parser.state.average_fps == "5.0"
    assert parser.state.current_frame == 10
    assert parser.state.elapsed_media_time == pytest.approx(1.0)


def test_bar_width_resolved_once(recorder, monkeypatch):
    monkeypatch.setenv("COLUMNS", "120")
    handler = recorder
    parser = ProgressParser(_job(bar_width=None), handler)
    assert parser.state.bar_width is None

    parser.feed("time=00:00:01.00\r")
    width = parser.state.bar_width
    assert width is not None and width > 0

    monkeypatch.setenv("COLUMNS", "200")
    parser.feed("time=00:00:02.00\rframe=123456\rspeed=1.0x\r")
    assert parser.state.bar_width == width
    assert {msg.bar_width for msg in handler.of_type(msgtypes.ProgressBarMessage)} == {width}


def test_fixed_bar_width_is_kept(recorder, monkeypatch):
    monkeypatch.setenv("COLUMNS", "300")
    handler = recorder
    parser = ProgressParser(_job(bar_width=0), handler)
    parser.feed("time=00:00:01.00\r")
    assert parser.state.bar_width == 0
    assert handler.of_type(msgtypes.ProgressBarMessage)[0].bar_width == 0


def test_eta_defined_on_first_record(recorder):
    handler = recorder
    parser = ProgressParser(_job(), handler)
    parser.feed("time=00:00:00.00\rspeed=0x\r")

    assert parser.state.eta_seconds == 0.0
    assert math.isfinite(parser.state.eta_seconds)
    (stats,) = handler.of_type(msgtypes.ProgressStatsMessage)
    assert stats.eta == "0.0s"


def test_stream_closed_without_records(recorder):
    handler = recorder
    parser = ProgressParser(_job(), handler)
    asyncio.run(_consume(parser, b""))

    assert parser.state.records_seen == 0
    assert not handler.of_type(msgtypes.ProgressBarMessage)
    assert not handler.of_type(msgtypes.ProgressStatsMessage)

    parser.finish()
    (finished,) = handler.of_type(msgtypes.ProgressFinishedMessage)
    assert finished.total == 100.0


def test_progress_sequence_ends_with_forced_completion(recorder):
    handler = recorder
    parser = ProgressParser(_job(total_duration=100.0), handler)
    parser.begin()
    reports = b"".join(
        f"frame={n}\nout_time={timestamp}\nspeed=1x\nprogress=continue\n".encode()
        for n, timestamp in enumerate(
            ("00:00:00.000000", "00:00:25.000000", "00:00:50.000000", "00:01:39.000000")
        )
    )
    asyncio.run(_consume(parser, reports))
    parser.finish()

    percents = [msg.percent for msg in handler.of_type(msgtypes.ProgressBarMessage)]
    assert percents == pytest.approx([0.0, 25.0, 50.0, 99.0])
    assert isinstance(handler.messages[0], msgtypes.ProgressStartedMessage)
    assert isinstance(handler.messages[-1], msgtypes.ProgressFinishedMessage)


def test_elapsed_time_never_decreases(recorder):
    handler = recorder
    parser = ProgressParser(_job(), handler)
    parser.feed("time=00:00:10.00\rframe=200\r")
    parser.feed("time=00:00:05.00\rframe=100\r")

    assert parser.state.elapsed_media_time == pytest.approx(10.0)
    assert parser.state.current_frame == 200
    percents = [msg.percent for msg in handler.of_type(msgtypes.ProgressBarMessage)]
    assert percents == sorted(percents)


def test_malformed_records_are_skipped(recorder):
    handler = recorder
    parser = ProgressParser(_job(), handler)
    parser.feed("time=N/A\rframe=abc\rout_time=-00:00:00.040000\n")
    parser.feed("time=00:00:02.00\r")

    assert parser.state.current_frame == 0
    assert parser.state.elapsed_media_time == pytest.approx(2.0)
    assert len(handler.of_type(msgtypes.ProgressBarMessage)) == 1


def test_records_split_across_reads(recorder):
    handler = recorder
    parser = ProgressParser(_job(), handler)
    parser.feed_bytes(b"fra")
    parser.feed_bytes(b"me=5")
    assert parser.state.current_frame == 0
    parser.feed_bytes(b"\rti")
    assert parser.state.current_frame == 5
    parser.feed_bytes(b"me=00:00:01.50\n")
    assert parser.state.elapsed_media_time == pytest.approx(1.5)


def test_multibyte_characters_split_across_reads(recorder):
    handler = recorder
    parser = ProgressParser(_job(), handler)
    encoded = "title=café\nframe=3\n".encode()
    split = encoded.index(b"\xc3") + 1
    parser.feed_bytes(encoded[:split])
    parser.feed_bytes(encoded[split:])
    assert parser.state.current_frame == 3


def test_recent_fps_window(recorder):
    parser = ProgressParser(_job(), recorder)
    now = time.monotonic()
    parser.state.job_start_clock = now - 4.0
    parser.state.window_start_clock = now - 2.0
    parser.state.window_start_frame = 20

    parser.feed("frame=60\r")
    assert parser.state.recent_fps == "20.0"
    assert parser.state.window_start_frame == 60
    assert parser.state.average_fps == "15.0"

    # a second sample within the window leaves the recent rate alone
    parser.feed("frame=70\r")
    assert parser.state.recent_fps == "20.0"
    assert parser.state.window_start_frame == 60


def _visible_lines(output: str) -> list[str]:
    # each redraw starts after a carriage return; escape sequences take up no columns
    plain = re.sub(r"\x1b\[[0-9;]*[A-Za-z]", "", output)
    return [segment for line in plain.split("\n") for segment in line.split("\r")]


def test_status_line_fits_terminal(capsys, monkeypatch):
    monkeypatch.setenv("COLUMNS", "80")
    parser = ProgressParser(_job(total_duration=600.0, bar_width=None), AnsiMessageHandler())

    # the first report is the shortest line the parser will draw
    parser.state.job_start_clock = time.monotonic() - 0.5
    parser.begin()
    parser.feed("frame=12\nout_time=00:00:00.50\nspeed=1x\n")

    parser.state.job_start_clock = time.monotonic() - 50.0
    parser.state.window_start_clock = time.monotonic() - 50.0
    parser.feed("frame=3000\nout_time=00:01:40.00\nspeed=1x\n")
    parser.feed("frame=35999\nout_time=00:09:59.90\nspeed=1x\n")
    parser.finish()

    lines = _visible_lines(capsys.readouterr().out)
    assert any("fp1s: 60.0" in line for line in lines)
    assert max(len(line) for line in lines) <= 80
