#!/usr/bin/python3

import shutil

from colorama import Fore, Style

# threshold at which the bar is drawn as complete; the last reported timestamp is typically a
# frame or so short of the expected duration
SNAP_COMPLETE_FRACTION = 0.995

BAR_FILL = "─"
BAR_LEADING_EDGE = ">"


def progress_bar(done: float, total: float, length: int, color: bool = True) -> str:
    """
    Renders a bracketed progress bar.

    The bar always occupies ``length + 3`` visible cells (two brackets, ``length`` units of
    progress and one leading edge cell).  When ``color`` is set, the same number of escape
    sequences is emitted regardless of progress, so the length of the returned string only
    depends on ``length``.

    Callers are expected to skip rendering entirely when ``length <= 0``.
    """
    filled = done / total * length
    if done >= SNAP_COMPLETE_FRACTION * total:
        filled = length
    num_filled = min(max(int(filled), 0), length)
    complete = num_filled >= length

    # a full bar has no distinct leading edge; the fill continues through the last cell
    leading_edge = BAR_FILL if complete else BAR_LEADING_EDGE
    head = BAR_FILL * num_filled + leading_edge
    tail = BAR_FILL * (length - num_filled)
    if not color:
        return f"[{head}{tail}]"
    return f"[{Fore.LIGHTGREEN_EX}{head}{Fore.LIGHTBLACK_EX}{tail}{Style.RESET_ALL}]"


def terminal_width() -> int:
    return shutil.get_terminal_size().columns


def progress_bar_size(text_length: int) -> int:
    """
    Returns the bar length that fits on the current terminal line next to a status text of the
    given length.  The result may be zero or negative on narrow terminals, meaning no bar.
    """
    return terminal_width() - 7 - text_length
