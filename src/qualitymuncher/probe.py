#!/usr/bin/python3

import pathlib

import av

from .models.media import MediaData


class ProbeError(Exception):
    """
    Exception indicating that an input could not be opened or read as a media file.
    """


def _open(path: pathlib.Path):
    try:
        return av.open(str(path), "r")
    except (av.error.FFmpegError, OSError) as exc:
        raise ProbeError(f"Could not read media file {path}: {exc}") from exc


def probe(path: pathlib.Path) -> MediaData:
    """
    Reads the duration and primary stream properties of a media file.
    """
    with _open(path) as container:
        duration = 0.0
        if container.duration is not None:
            duration = container.duration / av.time_base
        else:
            # fall back to the longest stream if the container doesn't report one
            stream_durations = [
                float(stream.duration * stream.time_base)
                for stream in container.streams
                if stream.duration is not None and stream.time_base is not None
            ]
            duration = max(stream_durations, default=0.0)

        media = MediaData(
            duration=duration,
            has_video=bool(container.streams.video),
            has_audio=bool(container.streams.audio),
        )
        if media.has_video:
            video = container.streams.video[0]
            media.width = video.codec_context.width
            media.height = video.codec_context.height
            rate = video.average_rate or video.guessed_rate
            media.framerate = float(rate) if rate else 0.0
        return media


def frame_count(path: pathlib.Path) -> int:
    """
    Counts the packets in the first video stream.
    This reads through the entire file, so it should only be used for very short inputs.
    """
    with _open(path) as container:
        if not container.streams.video:
            return 0
        return sum(1 for packet in container.demux(video=0) if packet.size)
