"""Follow the event stream file written by a running test process."""

import asyncio
import codecs
from collections.abc import AsyncIterator
from pathlib import Path


async def follow_lines(
    path: Path,
    done: asyncio.Event,
    poll_interval: float = 0.1,
) -> AsyncIterator[str]:
    """Yield lines appended to ``path`` as they are written.

    The file is polled every ``poll_interval`` seconds and may not exist
    yet. Once ``done`` is set the rest of the file is read, a final
    unterminated line included, and iteration stops.

    Args:
        path: File the test process writes its event stream to
        done: Set when the writer has exited
        poll_interval: Seconds between reads

    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    offset = 0
    pending = ""

    while True:
        finished = done.is_set()
        data = _read_from(path, offset)
        offset += len(data)

        pending += decoder.decode(data, final=finished)
        *lines, pending = pending.split("\n")
        for line in lines:
            yield line.rstrip("\r")

        if finished:
            if pending:
                yield pending
            return

        await asyncio.sleep(poll_interval)


def _read_from(path: Path, offset: int) -> bytes:
    try:
        with path.open("rb") as stream:
            stream.seek(offset)
            return stream.read()
    except FileNotFoundError:
        return b""
