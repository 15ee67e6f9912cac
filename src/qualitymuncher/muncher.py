#!/usr/bin/python3

import asyncio
import os
import pathlib
import shutil
import sys
import tempfile
import time

import msgspec

from . import filters
from .encoder import EncodeSession, OutputMissingError
from .models import messages as msgtypes
from .models.job import EncodingJob, MediaKind
from .models.media import MediaData
from .output import BaseMessageHandler, MessageDispatcher, widest_pass_text
from .probe import ProbeError, frame_count, probe
from .progress import estimate_remaining
from .util.paths import resolve_output_path
from .util.terminal import progress_bar_size
from .util.timefmt import format_seconds, trim_time

# inputs shorter than this are checked for being a single frame
IMAGE_DURATION_THRESHOLD = 1.0

_EXTENSIONS = {
    MediaKind.VIDEO: ".mp4",
    MediaKind.AUDIO: ".mp3",
    MediaKind.IMAGE: ".jpg",
}


def _elapsed_since(start: float) -> str:
    return trim_time(format_seconds(time.monotonic() - start))


def _confirm_overwrite(output_path: pathlib.Path) -> bool:
    try:
        response = input(f"The output file {output_path} already exists! Overwrite? [Y/N] ")
    except EOFError:
        return False
    return response.strip().lower() == "y"


class JobFailed(Exception):
    """
    Exception indicating that a queued input could not be processed.  The reason has already
    been reported to the message handlers; the queue moves on to the next input.
    """


async def _munch_image(
    args: "QualityMuncher",
    media: MediaData,
    job: EncodingJob,
    status: BaseMessageHandler,
) -> bool:
    """
    Encodes an image, then re-encodes it for each additional ``--loop`` pass.
    Returns True if any encoder pass exited unsuccessfully; later passes are not run.
    """
    result = await EncodeSession(job, status, show_progress=False).run()
    if result.exit_code != 0:
        return True
    if args.loop <= 1:
        return False

    bar_width = job.bar_width
    if bar_width is None:
        bar_width = progress_bar_size(len(widest_pass_text()))

    start = time.monotonic()
    status.handle_message(msgtypes.ProgressStartedMessage(total=args.loop, bar_width=0))
    with tempfile.TemporaryDirectory(prefix="qualitymuncher-") as tempdir:
        source = job.output_path
        for current_pass in range(1, args.loop + 1):
            if current_pass == args.loop:
                codec = "final"
                dest = job.output_path
            else:
                codecs = filters.IMAGE_PASS_CODECS
                codec = codecs[(current_pass - 1) % len(codecs)]
                dest = pathlib.Path(tempdir) / (
                    f"loop{current_pass}{filters.image_pass_suffix(codec)}"
                )
            pass_job = msgspec.structs.replace(
                job,
                input_path=source,
                output_path=dest,
                encoder_args=tuple(filters.image_pass_args(args, source, dest, codec)),
            )
            result = await EncodeSession(pass_job, status, show_progress=False).run()
            if source != job.output_path:
                source.unlink(missing_ok=True)
            if result.exit_code != 0:
                return True
            source = dest

            eta = trim_time(
                format_seconds(
                    estimate_remaining(time.monotonic() - start, current_pass, args.loop)
                )
            )
            status.handle_message(
                msgtypes.PassProgressMessage(
                    current_pass=current_pass,
                    total_passes=args.loop,
                    bar_width=bar_width,
                    eta=eta,
                )
            )
    return False


async def _munch(
    args: "QualityMuncher",
    input_path: pathlib.Path,
    queue_position: int,
    status: BaseMessageHandler,
) -> None:
    queue_size = len(args.inputs)

    if not input_path.exists():
        status.handle_message(msgtypes.InputMissingMessage(input_path))
        raise JobFailed()
    if not os.access(input_path, os.R_OK):
        status.handle_message(
            msgtypes.WarningMessage(f"Input file {input_path} might not be accessible")
        )

    try:
        media = await asyncio.to_thread(probe, input_path)
    except ProbeError as exc:
        status.handle_message(msgtypes.JobSkippedMessage(input_path, str(exc)))
        raise JobFailed() from exc

    render_video = not args.no_video and media.has_video
    render_audio = not args.no_audio and (media.has_audio or args.replace_audio is not None)
    if not render_video and not render_audio:
        status.handle_message(
            msgtypes.JobSkippedMessage(input_path, "No audio or video streams to encode")
        )
        raise JobFailed()

    kind = MediaKind.VIDEO if render_video else MediaKind.AUDIO
    # only count frames when needed, since it reads through the whole input
    if render_video and media.duration < IMAGE_DURATION_THRESHOLD:
        if await asyncio.to_thread(frame_count, input_path) == 1:
            kind = MediaKind.IMAGE

    output_path = resolve_output_path(
        input_path, args.output, _EXTENSIONS[kind], multiple_inputs=queue_size > 1
    )
    if args.debug:
        status.handle_message(
            msgtypes.DebugMessage(f"{input_path}: {kind} {media}; output: {output_path}")
        )

    if output_path.exists() and not args.overwrite:
        if not await asyncio.to_thread(_confirm_overwrite, output_path):
            status.handle_message(
                msgtypes.JobSkippedMessage(input_path, "Output file already exists")
            )
            raise JobFailed()

    if kind != MediaKind.IMAGE and args.start >= media.duration:
        status.handle_message(
            msgtypes.JobSkippedMessage(
                input_path, "Start time cannot be greater than or equal to input duration"
            )
        )
        raise JobFailed()

    try:
        if kind == MediaKind.IMAGE:
            encoder_args = filters.image_args(args, media, input_path, output_path)
            total_duration = 1.0
        else:
            encoder_args = filters.video_args(
                args, media, input_path, output_path, render_video, render_audio
            )
            total_duration = filters.expected_duration(args, media)
    except ValueError as exc:
        status.handle_message(msgtypes.JobSkippedMessage(input_path, str(exc)))
        raise JobFailed() from exc

    job = EncodingJob(
        input_path=input_path,
        output_path=output_path,
        total_duration=total_duration,
        encoder_args=tuple(encoder_args),
        program=str(args.ffmpeg_path) if args.ffmpeg_path else "ffmpeg",
        update_interval=args.update_speed,
        loglevel=args.loglevel,
        debug=args.debug,
        bar_width=args.progress_bar,
        kind=kind,
        queue_position=queue_position,
        queue_size=queue_size,
    )

    status.handle_message(
        msgtypes.JobStartedMessage(input_path, output_path, queue_position, queue_size)
    )
    start = time.monotonic()
    try:
        if kind == MediaKind.IMAGE:
            failed = await _munch_image(args, media, job, status)
        else:
            result = await EncodeSession(job, status).run()
            failed = result.exit_code != 0
    except OutputMissingError as exc:
        status.handle_message(msgtypes.OutputMissingMessage(output_path))
        raise JobFailed() from exc

    status.handle_message(msgtypes.JobFinishedMessage(output_path, _elapsed_since(start)))
    if failed:
        raise JobFailed()


async def _run(args: "QualityMuncher") -> int:
    # prevent usage if we're running on an event loop that doesn't support the features we need
    if sys.platform == "win32" and isinstance(
        asyncio.get_event_loop(), asyncio.SelectorEventLoop
    ):
        raise RuntimeError(
            "Cannot use muncher with SelectorEventLoop as the "
            "running event loop on Windows as it does not support subprocesses"
        )

    program = str(args.ffmpeg_path) if args.ffmpeg_path else "ffmpeg"
    if not shutil.which(program):
        raise RuntimeError(f"Could not find encoder program '{program}'")

    status = MessageDispatcher(args.handlers)
    if args.debug:
        status.handle_message(msgtypes.DebugMessage(str(args)))

    start = time.monotonic()
    failed_jobs = 0

    # inputs are processed one at a time; each job owns the terminal while it runs
    for queue_position, input_path in enumerate(args.inputs, start=1):
        try:
            await _munch(args, input_path, queue_position, status)
        except JobFailed:
            failed_jobs += 1

    status.handle_message(msgtypes.QueueFinishedMessage(_elapsed_since(start), failed_jobs))
    return failed_jobs


class QualityMuncher(msgspec.Struct, kw_only=True):
    inputs: list[pathlib.Path]
    output: pathlib.Path | None = None
    debug: bool = False
    overwrite: bool = False
    progress_bar: int | None = None
    loop: int = 1
    loglevel: str = "error"
    update_speed: float = 0.0167
    no_video: bool = False
    no_audio: bool = False
    replace_audio: pathlib.Path | None = None
    preset: int = 4
    start: float = 0.0
    end: float | None = None
    duration: float | None = None
    volume: int = 0
    earrape: bool = False
    scale: float | None = None
    video_bitrate: int | None = None
    audio_bitrate: int | None = None
    stretch: str = "1:1"
    fps: int | None = None
    speed: float = 1.0
    zoom: float = 1.0
    fade_in: float = 0.0
    fade_out: float = 0.0
    stutter: int = 0
    vignette: float = 0.0
    corrupt: int = 0
    deep_fry: int = 0
    interlace: bool = False
    lagfun: bool = False
    resample: bool = False
    ffmpeg_path: pathlib.Path | None = None
    handlers: list[BaseMessageHandler] = msgspec.field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.inputs:
            raise ValueError("No input was specified")
        if self.start < 0:
            # a negative start time would produce an output with no video
            raise ValueError("Start time cannot be negative")
        if self.end is not None and self.start >= self.end:
            raise ValueError("Start time cannot be greater than or equal to end time")
        if self.end is not None and self.duration is not None:
            raise ValueError("Cannot specify both duration and end time")
        if self.duration is not None and self.duration <= 0:
            raise ValueError("Duration must be positive")
        if not 1 <= self.preset <= 7:
            raise ValueError("Preset must be between 1 and 7")
        if self.speed <= 0:
            raise ValueError("Speed must be positive")
        if self.fps is not None and self.fps <= 0:
            raise ValueError("Output fps must be positive")
        if self.scale is not None and self.scale <= 0:
            raise ValueError("Scale must be positive")
        if self.loop < 1:
            raise ValueError("Loop count must be at least 1")
        if self.update_speed <= 0:
            raise ValueError("Update speed must be positive")
        for name in ("video_bitrate", "audio_bitrate"):
            divisor = getattr(self, name)
            if divisor is not None and divisor <= 0:
                label = name.replace("_", " ").capitalize()
                raise ValueError(f"{label} divisor must be positive")
        for name in ("corrupt", "deep_fry"):
            if not 0 <= getattr(self, name) <= 10:
                label = name.replace("_", "-").capitalize()
                raise ValueError(f"{label} must be between 0 and 10")
        filters.parse_stretch(self.stretch)

    async def async_run(self) -> int:
        return await _run(self)

    def run(self) -> int:
        """
        Processes every input in order.  Returns the number of inputs that failed.
        """
        return asyncio.run(_run(self))
