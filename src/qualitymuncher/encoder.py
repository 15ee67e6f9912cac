#!/usr/bin/python3

import asyncio
import enum
import shlex

import msgspec

from .models import messages as msgtypes
from .models.job import EncodingJob
from .output import BaseMessageHandler
from .progress import READ_CHUNK_SIZE, ProgressParser

# ffmpeg is run with a quiet log level, so anything beyond this on standard error is treated as
# a reported problem
TRIVIAL_DIAGNOSTICS_LENGTH = 1


class OutputMissingError(Exception):
    """
    Exception indicating that the encoder finished but the output file does not exist.
    This points to a problem with the environment (permissions, disk space, paths) rather than
    with the encode itself.
    """


class SessionState(enum.Enum):
    NOT_STARTED = enum.auto()
    RUNNING = enum.auto()
    RECONCILED = enum.auto()


class EncodeResult(msgspec.Struct):
    exit_code: int | None
    diagnostics: str

    @property
    def encoder_error(self) -> bool:
        return self.exit_code != 0 or len(self.diagnostics) > TRIVIAL_DIAGNOSTICS_LENGTH


async def drain_stream(stream: asyncio.StreamReader | None) -> str:
    """
    Reads a stream to completion without interpreting it.
    """
    if not stream:
        return ""
    chunks: list[bytes] = []
    while True:
        data = await stream.read(READ_CHUNK_SIZE)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks).decode("utf8", errors="replace")


class EncodeSession:
    """
    Runs the encoder for a single job.

    Both of the encoder's output pipes are read for as long as the process runs; an undrained
    pipe would eventually stall the encoder once the pipe buffer fills up.  Standard output is
    parsed for progress, while standard error is collected and only inspected once the process
    has exited.

    A session can only be run once.
    """

    def __init__(
        self, job: EncodingJob, handler: BaseMessageHandler, show_progress: bool = True
    ):
        self.job = job
        self.handler = handler
        self.show_progress = show_progress
        self.state = SessionState.NOT_STARTED
        self.parser = ProgressParser(job, handler)

    async def run(self) -> EncodeResult:
        if self.state != SessionState.NOT_STARTED:
            raise RuntimeError("Encode sessions cannot be reused")
        self.state = SessionState.RUNNING

        job = self.job
        if job.debug:
            self.handler.handle_message(msgtypes.DebugMessage(shlex.join(job.command)))

        proc = await asyncio.create_subprocess_exec(
            *job.command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        if self.show_progress:
            self.parser.begin()
            stdout_reader = self.parser.consume(proc.stdout)
        else:
            stdout_reader = drain_stream(proc.stdout)

        # the process may exit before or after its pipes are closed; wait for all of them
        _, diagnostics, exit_code = await asyncio.gather(
            stdout_reader, drain_stream(proc.stderr), proc.wait()
        )
        result = EncodeResult(exit_code, diagnostics)

        if self.show_progress:
            self.parser.finish(show_stats=not result.encoder_error)
        self.state = SessionState.RECONCILED

        if result.encoder_error:
            self.handler.handle_message(
                msgtypes.EncoderErrorMessage(
                    input_path=job.input_path,
                    diagnostics=result.diagnostics,
                    exit_code=result.exit_code,
                )
            )

        if not job.output_path.exists():
            raise OutputMissingError(f"Output file {job.output_path} was not created")
        return result
