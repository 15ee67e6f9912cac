#!/usr/bin/python3

import msgspec


class MediaData(msgspec.Struct, kw_only=True):
    """
    Metadata for an input file, as reported by the probe.
    Video fields are zero when the input has no video stream.
    """

    duration: float = 0.0
    width: int = 0
    height: int = 0
    framerate: float = 0.0
    has_video: bool = False
    has_audio: bool = False
