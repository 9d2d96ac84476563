"""Configuration for running a package's tests."""

import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

type Platform = Literal["darwin", "linux", "windows"]


def current_platform() -> Platform:
    """Platform of the running interpreter."""
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("win"):
        return "windows"
    return "linux"


class TargetSources(BaseModel):
    """A test target's directory and source files.

    Used to tell which target a failing file belongs to when the test output
    does not name the target.
    """

    name: str
    path: str = Field(..., description="Target directory relative to the package")
    sources: Sequence[str] = Field(
        default_factory=list,
        description="Source files relative to the target directory (empty means any)",
    )


class RunnerConfig(BaseModel):
    """Configuration for running tests in one package."""

    package_path: Path = Path(".")
    swift_executable: str = "swift"
    platform: Platform = Field(default_factory=current_platform)
    parallel: bool = False
    # Run XCTests by invoking the test bundle directly instead of `swift test`
    xctest_binary: Path | None = None
    build_command: Sequence[str] | None = None
    env: Mapping[str, str] = Field(default_factory=dict)
    targets: Sequence[TargetSources] = Field(default_factory=list)
    event_poll_interval: float = 0.1
    record_duration: bool = True

    @property
    def is_darwin(self) -> bool:
        """Whether XCTest output uses the Darwin format."""
        return self.platform == "darwin"
