#!/usr/bin/python3

import math
import pathlib
import typing

from .models.media import MediaData

if typing.TYPE_CHECKING:
    from .muncher import QualityMuncher

# bitrate in bits per second that the audio bitrate divisor is applied to
BASE_AUDIO_BITRATE = 80_000

# mjpeg quality scale used for image outputs (31 is the worst quality)
WORST_MJPEG_QUALITY = 31

# codecs cycled through when re-encoding an image multiple times
IMAGE_PASS_CODECS = ("webp", "x264", "mjpeg")


def _num(value: float) -> str:
    # formats numbers the way they'd be typed on the command line ('2' instead of '2.0')
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def parse_stretch(stretch: str) -> tuple[int, int]:
    """
    Parses an aspect ratio multiplier in the form 'W:H'.
    """
    width, sep, height = stretch.partition(":")
    if not sep:
        raise ValueError(f"Stretch '{stretch}' must be in the form W:H")
    return int(width), int(height)


def output_fps(args: "QualityMuncher") -> int:
    return args.fps if args.fps is not None else 24 - (3 * args.preset)


def output_scale(args: "QualityMuncher") -> float:
    return args.scale if args.scale is not None else 1.0 / args.preset


def output_resolution(args: "QualityMuncher", width: int, height: int) -> tuple[int, int]:
    """
    Computes the output resolution.  Dimensions are rounded to even numbers, as required by
    most encoders for yuv420p output, and are never smaller than 2.
    """
    scale = output_scale(args)
    aspect_width, aspect_height = parse_stretch(args.stretch)

    def _even(value: float) -> int:
        return max(2, int(math.floor(value + 0.5) / 2) * 2)

    return _even(width * scale * aspect_width), _even(height * scale * aspect_height)


def video_bitrate(args: "QualityMuncher", width: int, height: int, fps: int) -> int:
    divisor = args.video_bitrate or args.preset
    return width * height * int(math.sqrt(fps)) // divisor


def audio_bitrate(args: "QualityMuncher") -> int:
    divisor = args.audio_bitrate or args.preset
    return BASE_AUDIO_BITRATE // divisor


def expected_duration(args: "QualityMuncher", media: MediaData) -> float:
    """
    Duration of the output after trimming and speed changes, used as the total for progress.
    """
    trimmed = media.duration - args.start
    if args.end is not None:
        trimmed = min(trimmed, args.end - args.start)
    if args.duration is not None:
        trimmed = min(trimmed, args.duration)
    return max(trimmed, 0.0) / args.speed


def fps_filter(args: "QualityMuncher", media: MediaData) -> str:
    fps = output_fps(args)
    if not args.resample:
        return f"fps={fps}"
    input_fps = int(media.framerate)
    if fps > input_fps:
        raise ValueError(
            "Cannot resample from a lower framerate to a higher framerate "
            f"(output fps {fps} exceeds input fps {input_fps})"
        )
    # blend the frames that would otherwise be dropped
    return f"tmix=frames={input_fps // fps}:weights=1,fps={fps}"


def deep_fry_filter(amount: int) -> str:
    return (
        f"eq=saturation={_num(amount * 0.15 + 0.85)}:contrast={amount},"
        f"unsharp=5:5:1.25:5:5:{_num(amount / 6.66)},"
        f"noise=alls={amount * 5}:allf=t"
    )


def zoom_filter(zoom: float, fps: int) -> str:
    return (
        f"zoompan=d=1:zoom={_num(zoom)}:fps={fps}"
        ":x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
    )


def vignette_filter(amount: float) -> str:
    return f"vignette=PI/(5/({_num(amount)}/2))"


def video_filters(
    args: "QualityMuncher", media: MediaData, width: int, height: int
) -> list[str]:
    fps = output_fps(args)
    filters = []
    if args.speed != 1:
        filters.append(f"setpts=(1/{_num(args.speed)})*PTS")
    filters += [fps_filter(args, media), f"scale={width}:{height}", "setsar=1:1"]
    if args.fade_in:
        filters.append(f"fade=t=in:d={_num(args.fade_in)}")
    if args.fade_out:
        filters.append(
            f"fade=t=out:d={_num(args.fade_out)}:st={_num(media.duration - args.fade_out)}"
        )
    if args.zoom != 1:
        filters.append(zoom_filter(args.zoom, fps))
    if args.vignette:
        filters.append(vignette_filter(args.vignette))
    if args.interlace:
        filters.append("interlace")
    if args.lagfun:
        filters.append("lagfun")
    if args.stutter:
        filters.append(f"random=frames={args.stutter}")
    if args.deep_fry:
        filters.append(deep_fry_filter(args.deep_fry))
    return filters


def audio_filter_chains(args: "QualityMuncher") -> list[str]:
    """
    Returns the audio filter chains; each chain is a separate entry in the filter graph.
    """
    chains = []
    chain = []
    if args.earrape:
        chain.append("aeval=sgn(val(5)):c=same")
    if args.volume:
        chain.append(f"volume={args.volume}dB")
    if chain:
        chains.append(",".join(chain))
    if args.speed != 1:
        # the replacement audio is the second input
        source = "[1]" if args.replace_audio else "[0]"
        chains.append(f"{source}atempo={_num(args.speed)}")
    return chains


def filter_graph(
    args: "QualityMuncher",
    media: MediaData,
    width: int,
    height: int,
    render_video: bool,
    render_audio: bool,
) -> str:
    chains = []
    if render_video:
        chains.append(",".join(video_filters(args, media, width, height)))
    if render_audio:
        chains += audio_filter_chains(args)
    return ";".join(chains)


def corrupt_amount(args: "QualityMuncher", width: int, height: int, bitrate: int) -> int:
    # the amount of corruption scales with the size of the frame relative to its bitrate
    return int(width * height / max(bitrate, 1) * 100_000 / (args.corrupt * 3))


def common_args(args: "QualityMuncher") -> list[str]:
    return [
        "-y",
        "-loglevel",
        args.loglevel,
        "-hide_banner",
        "-progress",
        "-",
        "-stats_period",
        _num(args.update_speed),
    ]


def video_args(
    args: "QualityMuncher",
    media: MediaData,
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    render_video: bool,
    render_audio: bool,
) -> list[str]:
    """
    Builds the encoder arguments for a video or audio input.
    """
    if not render_video:
        # placeholder dimensions so the bitrate calculation stays defined
        media = MediaData(
            duration=media.duration,
            width=1,
            height=1,
            framerate=1.0,
            has_audio=media.has_audio,
        )

    fps = output_fps(args)
    width, height = output_resolution(args, media.width, media.height)
    bitrate = video_bitrate(args, width, height, fps)

    command = common_args(args)
    if args.start:
        command += ("-ss", _num(args.start))

    trim_duration = args.duration
    if args.end is not None:
        trim_duration = args.end - args.start
    if trim_duration is not None:
        command += ("-t", _num(trim_duration))

    if not render_video:
        command.append("-vn")
    if not render_audio:
        command.append("-an")

    command += ("-i", str(input_path))
    if args.replace_audio:
        command += ("-i", str(args.replace_audio), "-map", "0:v:0", "-map", "1:a:0")

    if render_video:
        command += ("-preset", "ultrafast", "-shortest")
        command += ("-c:v", "libx264", "-b:v", str(bitrate))
        command += ("-c:a", "aac", "-b:a", str(audio_bitrate(args)))
    else:
        command += ("-shortest", "-c:a", "libmp3lame", "-b:a", str(audio_bitrate(args)))

    graph = filter_graph(args, media, width, height, render_video, render_audio)
    if graph:
        command += ("-filter_complex", graph)

    if args.corrupt:
        command += ("-bsf", f"noise={corrupt_amount(args, width, height, bitrate)}")

    command.append(str(output_path))
    return command


def image_args(
    args: "QualityMuncher",
    media: MediaData,
    input_path: pathlib.Path,
    output_path: pathlib.Path,
) -> list[str]:
    """
    Builds the encoder arguments for the initial encode of an image.
    """
    width, height = output_resolution(args, media.width, media.height)
    filters = [f"scale={width}:{height}", "setsar=1:1"]
    if args.zoom != 1:
        filters.append(zoom_filter(args.zoom, output_fps(args)))
    if args.vignette:
        filters.append(vignette_filter(args.vignette))
    if args.deep_fry:
        filters.append(deep_fry_filter(args.deep_fry))

    return common_args(args) + [
        "-i",
        str(input_path),
        "-c:v",
        "mjpeg",
        "-q:v",
        str(WORST_MJPEG_QUALITY),
        "-frames:v",
        "1",
        "-filter_complex",
        ",".join(filters),
        str(output_path),
    ]


def image_pass_suffix(codec: str) -> str:
    return {"webp": ".webp", "x264": ".mkv", "mjpeg": ".jpg"}[codec]


def image_pass_args(
    args: "QualityMuncher", source: pathlib.Path, dest: pathlib.Path, codec: str
) -> list[str]:
    """
    Builds the encoder arguments for a single re-encode of an image.
    """
    match codec:
        case "webp":
            codec_args = [
                "-c:v",
                "libwebp",
                "-compression_level",
                str(max(int(1 / args.preset * 7.0) - 1, 0)),
                "-quality",
                str(args.preset * 12 + 16),
            ]
        case "x264":
            codec_args = ["-c:v", "libx264", "-crf", str(int(args.preset * (51.0 / 7.0)))]
        case "mjpeg":
            codec_args = ["-c:v", "mjpeg", "-q:v", str(int(args.preset * 3.0) + 10)]
        case "final":
            codec_args = ["-c:v", "mjpeg", "-q:v", str(WORST_MJPEG_QUALITY)]
        case _:
            raise ValueError(f"Unknown image pass codec {codec}")
    return common_args(args) + ["-i", str(source), *codec_args, "-frames:v", "1", str(dest)]
