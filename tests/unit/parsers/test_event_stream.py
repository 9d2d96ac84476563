"""Tests for following the event stream file."""

import asyncio
from collections.abc import Sequence
from pathlib import Path

from testrun_sync.parsers.event_stream import follow_lines


async def collect(path: Path, writes: Sequence[bytes]) -> list[str]:
    """Follow ``path`` while ``writes`` are appended to it one by one."""
    done = asyncio.Event()

    async def write() -> None:
        for data in writes:
            await asyncio.sleep(0.01)
            with path.open("ab") as stream:
                stream.write(data)
        done.set()

    writer = asyncio.create_task(write())
    lines = [line async for line in follow_lines(path, done, poll_interval=0.002)]
    await writer
    return lines


async def test_yields_lines_as_they_are_written(tmp_path: Path) -> None:
    """Splits appended data into lines and keeps the final partial line."""
    lines = await collect(
        tmp_path / "events.jsonl",
        [b"first\r\nsec", "ond ✅\n".encode(), b"last"],
    )

    assert lines == ["first", "second ✅", "last"]


async def test_decodes_characters_split_between_writes(tmp_path: Path) -> None:
    """A multibyte character written in two parts is decoded whole."""
    encoded = "✅\n".encode()

    lines = await collect(tmp_path / "events.jsonl", [encoded[:2], encoded[2:]])

    assert lines == ["✅"]


async def test_missing_file_yields_nothing(tmp_path: Path) -> None:
    """A stream that was never written is empty."""
    done = asyncio.Event()
    done.set()

    lines = [line async for line in follow_lines(tmp_path / "missing.jsonl", done)]

    assert lines == []
