#!/usr/bin/python3

import re
from typing import Self

import msgspec

# ffmpeg's "-progress" output reports 'out_time=HH:MM:SS.micros'; the classic stats line reports
# 'time=HH:MM:SS.ff'.  both are accepted.  negative timestamps and 'N/A' are not matched.
_TIME_RE = re.compile(r"(?<![\w])(?:out_)?time=(\d+):(\d{1,2}):(\d{1,2})(?:\.(\d+))?")

# the lookbehind prevents 'drop_frames=' / 'dup_frames=' from being picked up
_FRAME_RE = re.compile(r"(?<![\w])frame=\s*(\d+)")

# ffmpeg emits 'speed=' as the last stats field of a report
_SPEED_RE = re.compile(r"(?<![\w])speed=")


class TelemetryRecord(msgspec.Struct, kw_only=True):
    """
    Telemetry extracted from a single chunk of ffmpeg progress output, where a chunk is the text
    between two carriage return / line feed characters.

    Any combination of fields may be present; ffmpeg interleaves partial and full reports.
    """

    time: float | None = None
    """ Output media time in seconds. """

    frame: int | None = None
    """ Cumulative number of frames written. """

    speed_seen: bool = False
    """ Whether or not the chunk contained the end-of-report 'speed' field. """

    @property
    def empty(self) -> bool:
        return self.time is None and self.frame is None and not self.speed_seen

    @classmethod
    def from_chunk(cls, chunk: str) -> Self:
        """
        Parses the recognized markers out of a completed chunk.  Unparseable values are left as
        None so the caller can skip updating the derived statistics for that chunk.
        """
        record = cls()
        if match := _TIME_RE.search(chunk):
            hours, minutes, seconds, fraction = match.groups()
            record.time = (
                int(hours) * 3600
                + int(minutes) * 60
                + int(seconds)
                + (float(f"0.{fraction}") if fraction else 0.0)
            )
        if match := _FRAME_RE.search(chunk):
            record.frame = int(match.group(1))
        record.speed_seen = _SPEED_RE.search(chunk) is not None
        return record
