#!/usr/bin/python3


import argparse
import contextlib
import pathlib
import sys
import typing
from types import ModuleType

import colorama
import msgspec

from .muncher import QualityMuncher
from .output import CLIMessageHandlers

wakepy: ModuleType | None = None
try:
    import wakepy
except ImportError:
    pass

colorama.just_fix_windows_console()


def _progress_style_choices() -> list[str]:
    return [
        handler.tag
        for handler in msgspec.inspect.multi_type_info(typing.get_args(CLIMessageHandlers))
        if isinstance(handler, msgspec.inspect.StructType)
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Worsens the quality of video, audio and image files using ffmpeg.",
    )

    parser.add_argument(
        "-i",
        "--input",
        dest="inputs",
        type=pathlib.Path,
        action="extend",
        nargs="+",
        required=True,
        help="Input file(s); multiple inputs are encoded one after another",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        help="Output file (relative paths are placed next to the input; ignored when "
        "multiple inputs are given)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Print debug information")
    parser.add_argument(
        "-y",
        "--overwrite",
        action="store_true",
        help="Overwrite the output file if it exists instead of prompting for confirmation",
    )
    parser.add_argument(
        "--progress-bar",
        type=int,
        help="Length of the progress bar; defaults based on terminal width (0 to disable)",
    )
    parser.add_argument(
        "--progress-style",
        type=str,
        choices=_progress_style_choices(),
        help="Style to use for displaying progress results "
        "(defaults to 'ansi' on a terminal, 'plain' otherwise)",
    )
    parser.add_argument(
        "--loop",
        type=int,
        default=1,
        help="Number of times to compress the input; only used for images",
    )
    parser.add_argument(
        "--loglevel", type=str, default="error", help="Log level passed to ffmpeg"
    )
    parser.add_argument(
        "--update-speed",
        type=float,
        default=0.0167,
        help="Interval in seconds at which ffmpeg reports progress",
    )
    parser.add_argument(
        "--no-video", action="store_true", help="Produce an output with no video"
    )
    parser.add_argument(
        "--no-audio", action="store_true", help="Produce an output with no audio"
    )
    parser.add_argument(
        "--replace-audio", type=pathlib.Path, help="Replace the audio with the specified file"
    )
    parser.add_argument(
        "-p",
        "--preset",
        type=int,
        default=4,
        help="Quality preset (1-7, higher = worse)",
    )
    parser.add_argument("--start", type=float, default=0.0, help="Start time of the output")
    parser.add_argument(
        "--end", type=float, help="End time of the output; cannot be used with --duration"
    )
    parser.add_argument(
        "--duration", type=float, help="Duration of the output; cannot be used with --end"
    )
    parser.add_argument(
        "-v",
        "--volume",
        type=int,
        default=0,
        help="Amount to increase or decrease the volume by, in dB",
    )
    parser.add_argument(
        "--earrape",
        action="store_true",
        help="Heavily distort the audio; the volume will be substantially increased",
    )
    parser.add_argument("-s", "--scale", type=float, help="Output scale")
    parser.add_argument(
        "--video-bitrate",
        "--vb",
        type=int,
        help="Video bitrate divisor (higher = worse)",
    )
    parser.add_argument(
        "--audio-bitrate",
        "--ab",
        type=int,
        help="Audio bitrate divisor (higher = worse)",
    )
    parser.add_argument(
        "--stretch", type=str, default="1:1", help="Modify the existing aspect ratio (W:H)"
    )
    parser.add_argument("--fps", type=int, help="Output framerate (lower = worse)")
    parser.add_argument("--speed", type=float, default=1.0, help="Video and audio speed")
    parser.add_argument(
        "-z", "--zoom", type=float, default=1.0, help="Amount to zoom in or out"
    )
    parser.add_argument("--fade-in", type=float, default=0.0, help="Fade in duration")
    parser.add_argument("--fade-out", type=float, default=0.0, help="Fade out duration")
    parser.add_argument(
        "--stutter",
        type=int,
        default=0,
        help="Randomize the order of frames (higher = more stutter)",
    )
    parser.add_argument("--vignette", type=float, default=0.0, help="Amount of vignette")
    parser.add_argument(
        "--corrupt", type=int, default=0, help="Corrupt the output (1-10, higher = worse)"
    )
    parser.add_argument(
        "--deep-fry", type=int, default=0, help="Deep-fry the output (1-10, higher = worse)"
    )
    parser.add_argument("--interlace", action="store_true", help="Interlace the output")
    parser.add_argument(
        "--lagfun", action="store_true", help="Force darker pixels to update slower"
    )
    parser.add_argument(
        "--resample",
        action="store_true",
        help="Blend frames together instead of dropping them",
    )
    parser.add_argument(
        "--ffmpeg-path",
        type=pathlib.Path,
        help="Path to ffmpeg binary, if there isn't one you want to use in your PATH",
    )
    parser.add_argument(
        "--keep-awake",
        action=argparse.BooleanOptionalAction,
        help="Ensures the system stays awake while the process is running",
        default=False,
    )
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    progress_style = args.progress_style
    if not progress_style:
        progress_style = "ansi" if sys.stdout.isatty() else "plain"

    try:
        muncher = msgspec.convert(vars(args), type=QualityMuncher)
    except msgspec.ValidationError as exc:
        parser.error(str(exc))

    with contextlib.ExitStack() as context:
        if args.keep_awake:
            if not wakepy:
                raise ValueError(
                    "wakepy is not installed; drop --keep-awake or install the 'keepawake' "
                    "optional dependency set"
                )
            context.enter_context(wakepy.keep.running())

        handler = msgspec.convert({"type": progress_style}, CLIMessageHandlers)
        muncher.handlers.append(handler)
        failed_jobs = muncher.run()

    if failed_jobs:
        sys.exit(1)
