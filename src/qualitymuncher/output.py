#!/usr/bin/python3

import pathlib

import colorama.ansi
import msgspec
from colorama import Cursor, Fore, Style

from .models import messages as msgtypes
from .util.terminal import progress_bar


class BaseMessageHandler(msgspec.Struct):
    def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        raise NotImplementedError()


class MessageDispatcher(BaseMessageHandler):
    # forwards messages to every registered handler in order
    handlers: list[BaseMessageHandler] = msgspec.field(default_factory=list)

    def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        for handler in self.handlers:
            handler.handle_message(msg)


def _enc_hook(obj: object) -> object:
    if isinstance(obj, pathlib.PurePath):
        return str(obj)
    raise NotImplementedError(f"Objects of type {type(obj)} are not supported")


class JSONLMessageHandler(BaseMessageHandler, tag="jsonl"):
    # outputs messages as newline-delimited JSON
    # this is intended for applications that read this tool's standard output
    def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        print(msgspec.json.encode(msg, enc_hook=_enc_hook).decode("utf8"), flush=True)


def _stats_text(time: str, eta: str, average_fps: str, recent_fps: str) -> str:
    return f" time: {time} ETA: {eta} fps: {average_fps} fp1s: {recent_fps}"


# widest values shown in a status line; the bar is sized against these so the line never wraps
WIDEST_TIME = "00:00:00.0s"
WIDEST_FPS = "99999.9"


def widest_stats_text() -> str:
    return " 100.0%" + _stats_text(WIDEST_TIME, WIDEST_TIME, WIDEST_FPS, WIDEST_FPS)


def widest_pass_text() -> str:
    return f" 100.0% ETA: {WIDEST_TIME}"


def _bar(done: float, total: float, bar_width: int) -> str:
    # a zero or negative width (narrow terminal or user choice) means no bar
    if bar_width <= 0 or total <= 0:
        return ""
    return progress_bar(done, total, bar_width)


def _print_common(msg: msgtypes.BaseMessage, color: bool) -> bool:
    """
    Prints messages that are rendered the same way by every terminal display.
    Returns False if the message was not handled.
    """

    def c(code: str) -> str:
        return code if color else ""

    match msg:
        case msgtypes.StringMessage():
            print(msg.text)
        case msgtypes.DebugMessage():
            print(f"{c(Style.DIM)}debug: {msg.text}{c(Style.RESET_ALL)}")
        case msgtypes.WarningMessage():
            print(f"{c(Fore.YELLOW)}Warning: {msg.text}{c(Style.RESET_ALL)}")
        case msgtypes.InputMissingMessage():
            print(
                f"{c(Fore.RED)}Error: input file {c(Fore.LIGHTRED_EX)}{msg.input_path}"
                f"{c(Fore.RED)} does not exist{c(Style.RESET_ALL)}"
            )
        case msgtypes.JobSkippedMessage():
            print(
                f"{c(Fore.YELLOW)}Skipping {msg.input_path}: {msg.reason}{c(Style.RESET_ALL)}"
            )
        case msgtypes.JobStartedMessage():
            queue_prefix = ""
            if msg.queue_size != 1:
                queue_prefix = f"[{msg.queue_position}/{msg.queue_size}] "
            print(
                f"{c(Fore.LIGHTBLUE_EX)}{queue_prefix}Encoding file {c(Fore.CYAN)}"
                f"{msg.input_path} {c(Fore.LIGHTBLUE_EX)}to {c(Fore.CYAN)}{msg.output_path}"
                f"{c(Style.RESET_ALL)}"
            )
        case msgtypes.EncoderErrorMessage():
            exit_info = f" (exit code {msg.exit_code})" if msg.exit_code else ""
            print(
                f"\n{c(Fore.RED)}Possible FFmpeg error{exit_info}:{c(Style.RESET_ALL)}"
                f"\n{c(Fore.RED)}{msg.diagnostics.strip()}{c(Style.RESET_ALL)}"
            )
        case msgtypes.OutputMissingMessage():
            print(
                f"{c(Fore.RED)}Fatal error: something went wrong when making the output file "
                f"{msg.output_path}{c(Style.RESET_ALL)}"
            )
        case msgtypes.JobFinishedMessage():
            print(
                f"{c(Fore.LIGHTGREEN_EX)}Finished encoding {c(Fore.GREEN)}{msg.output_path} "
                f"{c(Fore.LIGHTGREEN_EX)}in {msg.elapsed}{c(Style.RESET_ALL)}"
            )
        case msgtypes.QueueFinishedMessage():
            failed = f" ({msg.failed_jobs} failed)" if msg.failed_jobs else ""
            print(
                f"{c(Fore.LIGHTGREEN_EX)}Total time elapsed: {msg.elapsed}{failed}"
                f"{c(Style.RESET_ALL)}"
            )
        case _:
            return False
    return True


class AnsiMessageHandler(BaseMessageHandler, tag="ansi"):
    """
    Draws a progress bar that is updated in place using ANSI cursor movement.

    The progress display occupies exactly one terminal line.  Bar redraws rewrite that line;
    the stats that complete a report are followed by a newline, and the next redraw moves the
    cursor back up to rewrite the same line again.
    """

    # whether the cursor is still on the progress line (no newline emitted since the last draw)
    line_open: bool = False

    # bar and percentage last drawn, restored when stats arrive without a preceding redraw
    last_bar: str = ""

    def _rewind(self) -> str:
        # position the cursor at the start of the progress line and clear it
        prefix = "\r" if self.line_open else Cursor.UP(1) + "\r"
        return prefix + colorama.ansi.clear_line()

    def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        match msg:
            case msgtypes.ProgressStartedMessage():
                bar = _bar(0.0, msg.total, msg.bar_width)
                print(bar, flush=True)
                self.last_bar = bar
                self.line_open = False
            case msgtypes.ProgressBarMessage():
                bar = _bar(msg.elapsed, msg.total, msg.bar_width)
                self.last_bar = f"{bar} {msg.percent:.1f}%"
                print(f"{self._rewind()}{self.last_bar}", end="", flush=True)
                self.line_open = True
            case msgtypes.ProgressStatsMessage():
                prefix = "" if self.line_open else f"{self._rewind()}{self.last_bar}"
                stats = _stats_text(msg.time, msg.eta, msg.average_fps, msg.recent_fps)
                print(f"{prefix}{stats}", flush=True)
                self.line_open = False
            case msgtypes.ProgressFinishedMessage():
                bar = _bar(msg.total, msg.total, msg.bar_width)
                stats = ""
                if msg.show_stats:
                    stats = " 100.0%" + _stats_text(
                        msg.time, msg.eta, msg.average_fps, msg.recent_fps
                    )
                print(f"{self._rewind()}{bar}{stats}", flush=True)
                self.line_open = False
            case msgtypes.PassProgressMessage():
                bar = _bar(msg.current_pass, msg.total_passes, msg.bar_width)
                percent = msg.current_pass * 100 / msg.total_passes
                print(f"{self._rewind()}{bar} {percent:.1f}% ETA: {msg.eta}", flush=True)
                self.line_open = False
            case msgtypes.JobStartedMessage():
                self.line_open = False
                self.last_bar = ""
                _print_common(msg, color=True)
            case _:
                _print_common(msg, color=True)


class PlainMessageHandler(BaseMessageHandler, tag="plain"):
    """
    Prints one line per complete progress report without colors or cursor movement.
    Intended for terminals without ANSI support and for redirected output.
    """

    last_percent: float = 0.0

    def handle_message(self, msg: msgtypes.BaseMessage) -> None:
        match msg:
            case msgtypes.ProgressStartedMessage():
                self.last_percent = 0.0
            case msgtypes.ProgressBarMessage():
                self.last_percent = msg.percent
            case msgtypes.ProgressStatsMessage():
                print(
                    f"{self.last_percent:.1f}%"
                    + _stats_text(msg.time, msg.eta, msg.average_fps, msg.recent_fps),
                    flush=True,
                )
            case msgtypes.ProgressFinishedMessage():
                if msg.show_stats:
                    print(
                        "100.0%"
                        + _stats_text(msg.time, msg.eta, msg.average_fps, msg.recent_fps),
                        flush=True,
                    )
            case msgtypes.PassProgressMessage():
                percent = msg.current_pass * 100 / msg.total_passes
                print(f"{percent:.1f}% ETA: {msg.eta}", flush=True)
            case _:
                _print_common(msg, color=False)


CLIMessageHandlers = AnsiMessageHandler | PlainMessageHandler | JSONLMessageHandler
