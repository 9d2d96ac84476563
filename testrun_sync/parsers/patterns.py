"""Line patterns of XCTest console output, per platform."""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

type LineKind = Literal[
    "started",
    "passed",
    "failed",
    "error",
    "skipped",
    "suite_started",
    "suite_passed",
    "suite_failed",
]


@dataclass(frozen=True, kw_only=True)
class PatternSet:
    """Regular expressions recognising each kind of XCTest output line.

    Test case patterns capture the class (or target on Darwin) and the test
    name; ``passed``/``failed`` also capture the duration in seconds;
    ``error``/``skipped`` start with the file and line of the diagnostic and
    ``error`` ends with the message.
    """

    name: str
    started: re.Pattern[str]
    passed: re.Pattern[str]
    failed: re.Pattern[str]
    error: re.Pattern[str]
    skipped: re.Pattern[str]
    suite_started: re.Pattern[str]
    suite_passed: re.Pattern[str]
    suite_failed: re.Pattern[str]

    def first_pass(self) -> Sequence[tuple[LineKind, re.Pattern[str]]]:
        """Patterns tried in order on every line; the first match wins.

        ``passed`` is not part of this list, it is matched in a second pass.
        """
        return (
            ("started", self.started),
            ("failed", self.failed),
            ("error", self.error),
            ("skipped", self.skipped),
            ("suite_started", self.suite_started),
            ("suite_passed", self.suite_passed),
            ("suite_failed", self.suite_failed),
        )


DARWIN_PATTERNS = PatternSet(
    name="darwin",
    # Test Case '-[<target> <class.function>]' started.
    started=re.compile(r"^Test Case '-\[(\S+)\s(.*)\]' started."),
    # Test Case '-[<target> <class.function>]' passed (<duration> seconds)
    passed=re.compile(r"^Test Case '-\[(\S+)\s(.*)\]' passed \((\d.*) seconds\)"),
    # Test Case '-[<target> <class.function>]' failed (<duration> seconds)
    failed=re.compile(r"^Test Case '-\[(\S+)\s(.*)\]' failed \((\d.*) seconds\)"),
    # <path/to/test>:<line>: error: -[<target> <class.function>] : <error>
    error=re.compile(r"^(.+):(\d+):\serror:\s-\[(\S+)\s(.*)\] : (.*)$"),
    # <path/to/test>:<line>: -[<target> <class.function>] : Test skipped
    skipped=re.compile(r"^(.+):(\d+):\s-\[(\S+)\s(.*)\] : Test skipped"),
    suite_started=re.compile(r"^Test Suite '(.*)' started"),
    suite_passed=re.compile(r"^Test Suite '(.*)' passed"),
    suite_failed=re.compile(r"^Test Suite '(.*)' failed"),
)

NON_DARWIN_PATTERNS = PatternSet(
    name="non-darwin",
    # Test Case '<class>.<function>' started
    started=re.compile(r"^Test Case '(.*)\.(.*)' started"),
    # Test Case '<class>.<function>' passed (<duration> seconds)
    passed=re.compile(r"^Test Case '(.*)\.(.*)' passed \((\d.*) seconds\)"),
    # Test Case '<class>.<function>' failed (<duration> seconds)
    failed=re.compile(r"^Test Case '(.*)\.(.*)' failed \((\d.*) seconds\)"),
    # <path/to/test>:<line>: error: <class>.<function> : <error>
    error=re.compile(r"^(.+):(\d+):\serror:\s*(.*)\.(.*) : (.*)"),
    # <path/to/test>:<line>: <class>.<function> : Test skipped
    skipped=re.compile(r"^(.+):(\d+):\s*(.*)\.(.*) : Test skipped"),
    suite_started=re.compile(r"^Test Suite '(.*)' started"),
    suite_passed=re.compile(r"^Test Suite '(.*)' passed"),
    suite_failed=re.compile(r"^Test Suite '(.*)' failed"),
)


def patterns_for(is_darwin: bool) -> PatternSet:
    """Pattern set for the platform's XCTest output format."""
    return DARWIN_PATTERNS if is_darwin else NON_DARWIN_PATTERNS
