#!/usr/bin/python3

import asyncio
import codecs
import time

from .models import messages as msgtypes
from .models.ffmpeg import TelemetryRecord
from .models.job import EncodingJob, ProgressState
from .output import BaseMessageHandler, widest_stats_text
from .util.terminal import progress_bar_size
from .util.timefmt import format_seconds, trim_time

# size of each read from the encoder's output; characters are still processed one at a time
READ_CHUNK_SIZE = 4096

RECORD_TERMINATORS = ("\r", "\n")

# minimum wall time between samples of the windowed framerate
RECENT_FPS_WINDOW_SECS = 1.0


def estimate_remaining(wall_elapsed: float, current: float, total: float) -> float:
    """
    Extrapolates the remaining wall time from the time spent per unit of work done so far.
    No estimate can be made before any work is done, in which case this returns zero.
    """
    if current <= 0:
        return 0.0
    return wall_elapsed * (total - current) / current


class ProgressParser:
    """
    Incremental parser for the encoder's progress stream.

    Characters are accumulated until a carriage return or line feed completes a chunk; each
    completed chunk is checked for time, frame and speed markers, which update the job's
    ``ProgressState`` and are dispatched to the display handler as progress messages.
    """

    def __init__(self, job: EncodingJob, handler: BaseMessageHandler):
        self.job = job
        self.handler = handler
        self.state = ProgressState(
            total_duration=job.total_duration,
            bar_width=job.bar_width,
            bar_width_fixed=job.bar_width is not None,
        )
        self._buffer: list[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def _wall_elapsed(self) -> float:
        return time.monotonic() - self.state.job_start_clock

    def _displayed_bar_width(self) -> int:
        return self.state.bar_width or 0

    def begin(self) -> None:
        # until the bar is sized, the progress line is left empty so it does not wrap
        self.handler.handle_message(
            msgtypes.ProgressStartedMessage(
                total=self.state.total_duration, bar_width=self._displayed_bar_width()
            )
        )

    def feed(self, text: str) -> None:
        for char in text:
            if char not in RECORD_TERMINATORS:
                self._buffer.append(char)
                continue
            chunk = "".join(self._buffer)
            self._buffer.clear()
            if chunk:
                self._complete_chunk(chunk)

    def feed_bytes(self, data: bytes) -> None:
        self.feed(self._decoder.decode(data))

    def _complete_chunk(self, chunk: str) -> None:
        record = TelemetryRecord.from_chunk(chunk)
        if record.empty:
            return
        state = self.state
        state.records_seen += 1

        if record.time is not None:
            self._handle_time(record.time)
        if record.frame is not None:
            self._handle_frame(record.frame)
        if record.speed_seen:
            self.handler.handle_message(
                msgtypes.ProgressStatsMessage(
                    time=state.time_display,
                    eta=trim_time(format_seconds(state.eta_seconds)),
                    average_fps=state.average_fps,
                    recent_fps=state.recent_fps,
                )
            )

    def _handle_time(self, media_time: float) -> None:
        state = self.state
        state.elapsed_media_time = max(state.elapsed_media_time, media_time)
        state.time_display = trim_time(format_seconds(state.elapsed_media_time))
        state.eta_seconds = estimate_remaining(
            self._wall_elapsed(), state.elapsed_media_time, state.total_duration
        )

        if not state.bar_width_resolved:
            # sized once against the widest possible line so the bar neither jitters nor wraps
            state.bar_width = progress_bar_size(len(widest_stats_text()))

        self.handler.handle_message(
            msgtypes.ProgressBarMessage(
                elapsed=state.elapsed_media_time,
                total=state.total_duration,
                percent=state.percent,
                bar_width=self._displayed_bar_width(),
            )
        )

    def _handle_frame(self, frame: int) -> None:
        state = self.state
        state.current_frame = max(state.current_frame, frame)

        now = time.monotonic()
        wall_elapsed = now - state.job_start_clock
        if wall_elapsed > 0:
            state.average_fps = f"{state.current_frame / wall_elapsed:.1f}"

        window_elapsed = now - state.window_start_clock
        if window_elapsed >= RECENT_FPS_WINDOW_SECS:
            state.recent_fps = (
                f"{(state.current_frame - state.window_start_frame) / window_elapsed:.1f}"
            )
            state.window_start_frame = state.current_frame
            state.window_start_clock = now

    async def consume(self, stream: asyncio.StreamReader | None) -> None:
        """
        Reads the stream until the encoder closes it.  End of input is the normal way for the
        progress stream to finish and is not treated as an error.
        """
        if not stream:
            return
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            self.feed_bytes(data)
        self.feed(self._decoder.decode(b"", final=True))

    def finish(self, show_stats: bool = True) -> None:
        """
        Draws the bar at completion.  This is done even if no progress was ever reported, so a
        finished job always displays a complete bar.
        """
        state = self.state
        self.handler.handle_message(
            msgtypes.ProgressFinishedMessage(
                total=state.total_duration,
                bar_width=self._displayed_bar_width(),
                time=state.time_display or trim_time(format_seconds(state.total_duration)),
                eta=trim_time(format_seconds(state.eta_seconds)),
                average_fps=state.average_fps,
                recent_fps=state.recent_fps,
                show_stats=show_stats,
            )
        )
