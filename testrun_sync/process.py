"""Launch a test process and stream its output."""

import asyncio
import codecs
import logging
import os
import signal
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

type OutputCallback = Callable[[str], None]

READ_SIZE = 4096


@dataclass(frozen=True, kw_only=True)
class ProcessInvocation:
    """Command line and environment of one test process.

    ``kill_signal`` is sent on cancellation. ``swift test`` forwards SIGINT to
    the test binary it spawned; a test binary run directly is killed.
    """

    args: Sequence[str]
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    kill_signal: int = signal.SIGINT


@dataclass(frozen=True, kw_only=True)
class ProcessExit:
    """How a test process ended."""

    returncode: int
    killed: bool = False
    stderr_tail: str | None = None

    @property
    def signal(self) -> int | None:
        """Signal that terminated the process, if any."""
        return -self.returncode if self.returncode < 0 else None


async def run_process(
    invocation: ProcessInvocation,
    on_stdout: OutputCallback,
    on_stderr: OutputCallback,
    cancel: asyncio.Event,
) -> ProcessExit:
    """Run ``invocation`` to completion, forwarding decoded output.

    Output is delivered in chunks as it is read, split at arbitrary points.

    Args:
        invocation: Process to start
        on_stdout: Receives standard output text
        on_stderr: Receives standard error text
        cancel: When set, the process is sent its kill signal

    Returns:
        Exit status and the last line written to standard error

    Raises:
        OSError: If the process cannot be started

    """
    process = await asyncio.create_subprocess_exec(
        *invocation.args,
        cwd=invocation.cwd,
        env={**os.environ, **invocation.env},
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    log.info("Launched %s (pid %d)", " ".join(invocation.args), process.pid)

    if process.stdout is None or process.stderr is None:
        raise RuntimeError("Test process output is not piped")
    stderr_tail = _LastLine()
    pumps = asyncio.gather(
        _pump(process.stdout, on_stdout),
        _pump(process.stderr, on_stderr, stderr_tail),
    )

    wait_task = asyncio.ensure_future(process.wait())
    cancel_task = asyncio.ensure_future(cancel.wait())
    killed = False
    try:
        await asyncio.wait({wait_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        if cancel.is_set() and process.returncode is None:
            log.info("Cancelling test process %d", process.pid)
            process.send_signal(invocation.kill_signal)
            killed = True
        returncode = await wait_task
        await pumps
    finally:
        cancel_task.cancel()

    log.info("Test process %d exited with %d", process.pid, returncode)
    return ProcessExit(returncode=returncode, killed=killed, stderr_tail=stderr_tail.line)


class _LastLine:
    def __init__(self) -> None:
        self.line: str | None = None
        self._partial = ""

    def feed(self, text: str) -> None:
        *lines, self._partial = (self._partial + text).split("\n")
        for line in lines:
            if line.strip():
                self.line = line.strip()
        if self._partial.strip():
            self.line = self._partial.strip()


async def _pump(
    stream: asyncio.StreamReader,
    callback: OutputCallback,
    tail: _LastLine | None = None,
) -> None:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(READ_SIZE)
        text = decoder.decode(data, final=not data)
        if text:
            callback(text)
            if tail is not None:
                tail.feed(text)
        if not data:
            return
