#!/usr/bin/python3


def format_seconds(seconds: float) -> str:
    """
    Formats a duration as a zero-padded 'HH:MM:SS.s' string.

    The value is rounded to tenths of a second before splitting into fields so that values such
    as 59.97 carry over into the minute field instead of displaying as '00:00:60.0'.
    """
    tenths = max(0, round(seconds * 10))
    hours, tenths = divmod(tenths, 36_000)
    minutes, tenths = divmod(tenths, 600)
    return f"{hours:02d}:{minutes:02d}:{tenths / 10:04.1f}"


def trim_time(formatted: str) -> str:
    """
    Compacts a formatted time for display by removing leading fields that are zero, then appends
    the seconds unit.  The seconds component is always kept, so a zero duration is '0.0s'.
    """
    formatted = formatted.removesuffix("s")
    if formatted.startswith("00:"):
        formatted = formatted[3:]
        if formatted.startswith("00:"):
            formatted = formatted[3:]
            if formatted.startswith("0") and len(formatted) > 1 and formatted[1] != ".":
                formatted = formatted[1:]
    return f"{formatted}s"
