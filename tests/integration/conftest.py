"""Fixtures for integration tests."""

import sys
from pathlib import Path
from typing import Protocol

import pytest

from testrun_sync.process import ProcessInvocation


class ScriptFn(Protocol):
    """Protocol for script invocation function."""

    def __call__(self, source: str, **fields) -> ProcessInvocation:
        """Write a Python script and return an invocation running it."""


@pytest.fixture
def script(tmp_path: Path) -> ScriptFn:
    """Return function that prepares a Python script as a test process."""
    count = 0

    def _script(source: str, **fields) -> ProcessInvocation:
        nonlocal count
        count += 1
        path = tmp_path / f"script_{count}.py"
        path.write_text(source)
        return ProcessInvocation(args=[sys.executable, str(path)], cwd=tmp_path, **fields)

    return _script
