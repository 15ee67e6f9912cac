#!/usr/bin/python3

import enum
import pathlib
import time

import msgspec


class MediaKind(enum.StrEnum):
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"


class EncodingJob(msgspec.Struct, kw_only=True, frozen=True):
    """
    A single invocation of the encoder.  This is created once per queued input and is not
    modified while the encoder is running.
    """

    input_path: pathlib.Path
    output_path: pathlib.Path

    total_duration: float
    """ Expected duration of the output in seconds, after trimming and speed changes. """

    encoder_args: tuple[str, ...] = ()
    """ Arguments passed through to the encoder, excluding the program itself. """

    program: str = "ffmpeg"
    update_interval: float = 0.0167
    loglevel: str = "error"
    debug: bool = False

    bar_width: int | None = None
    """ Fixed progress bar length; None to size the bar based on the terminal width. """

    kind: MediaKind = MediaKind.VIDEO
    queue_position: int = 1
    queue_size: int = 1

    @property
    def command(self) -> list[str]:
        return [self.program, *self.encoder_args]


class ProgressState(msgspec.Struct, kw_only=True):
    """
    Running statistics for an encoder job.  This is owned by the progress parser of a single job
    and discarded once the job's summary line is printed.
    """

    total_duration: float

    elapsed_media_time: float = 0.0
    current_frame: int = 0

    job_start_clock: float = msgspec.field(default_factory=time.monotonic)
    window_start_clock: float = msgspec.field(default_factory=time.monotonic)
    window_start_frame: int = 0

    # formatted for display; single spaces until the first measurement is taken
    average_fps: str = " "
    recent_fps: str = " "

    eta_seconds: float = 0.0

    # trimmed elapsed media time, as last displayed
    time_display: str = ""

    bar_width: int | None = None
    bar_width_fixed: bool = False

    records_seen: int = 0

    @property
    def percent(self) -> float:
        if self.total_duration <= 0:
            return 0.0
        return self.elapsed_media_time * 100 / self.total_duration

    @property
    def bar_width_resolved(self) -> bool:
        return self.bar_width_fixed or self.bar_width is not None
