#!/usr/bin/python3

import pathlib

import msgspec


class BaseMessage(msgspec.Struct, tag=True):
    pass


class StringMessage(BaseMessage, tag="string-message"):
    # other properly-typed message structs should be used over this
    text: str


class DebugMessage(BaseMessage, tag="debug"):
    # only dispatched when running with --debug
    text: str


class WarningMessage(BaseMessage, tag="warning"):
    text: str


class InputMissingMessage(BaseMessage, tag="input-missing"):
    input_path: pathlib.Path


class JobSkippedMessage(BaseMessage, tag="job-skipped"):
    input_path: pathlib.Path
    reason: str


class JobStartedMessage(BaseMessage, tag="job-started"):
    input_path: pathlib.Path
    output_path: pathlib.Path
    queue_position: int
    queue_size: int


class ProgressStartedMessage(BaseMessage, tag="progress-started"):
    """
    Reserves the terminal line used by the progress display and draws an empty bar.
    """

    total: float
    bar_width: int


class ProgressBarMessage(BaseMessage, tag="progress-bar"):
    """
    Requests that the progress bar line be redrawn in place.
    This is sent whenever the output media time advances.
    """

    elapsed: float
    total: float
    percent: float

    bar_width: int
    """ Length of the bar in progress units; zero or negative to draw no bar. """


class ProgressStatsMessage(BaseMessage, tag="progress-stats"):
    """
    Completes the progress line with statistics.
    This is sent once per full ffmpeg report.
    """

    time: str
    eta: str
    average_fps: str
    recent_fps: str


class ProgressFinishedMessage(BaseMessage, tag="progress-finished"):
    """
    Final progress update for a job.  The bar is always drawn complete.
    """

    total: float
    bar_width: int
    time: str
    eta: str
    average_fps: str
    recent_fps: str

    show_stats: bool = True
    """ False if the encoder reported errors; the error message replaces the stats. """


class PassProgressMessage(BaseMessage, tag="pass-progress"):
    # progress through the image re-encoding loop
    current_pass: int
    total_passes: int
    bar_width: int
    eta: str


class EncoderErrorMessage(BaseMessage, tag="encoder-error"):
    input_path: pathlib.Path
    diagnostics: str
    exit_code: int | None = None
    """
    Exit code of the encoder.  ffmpeg may report errors on stderr while still exiting cleanly,
    so this may be zero.
    """


class OutputMissingMessage(BaseMessage, tag="output-missing"):
    output_path: pathlib.Path


class JobFinishedMessage(BaseMessage, tag="job-finished"):
    output_path: pathlib.Path
    elapsed: str


class QueueFinishedMessage(BaseMessage, tag="queue-finished"):
    elapsed: str
    failed_jobs: int = 0
