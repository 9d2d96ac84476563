"""Parsers attributing test process output to the tests of a run."""

from testrun_sync.parsers.identity import (
    ExactResolver,
    HeuristicResolver,
    IdentityResolver,
)
from testrun_sync.parsers.patterns import (
    DARWIN_PATTERNS,
    NON_DARWIN_PATTERNS,
    PatternSet,
    patterns_for,
)
from testrun_sync.parsers.run_state import PendingFailure, RunState
from testrun_sync.parsers.swift_testing import SwiftTestingOutputParser
from testrun_sync.parsers.xctest import XCTestOutputParser
from testrun_sync.parsers.xunit import XUnitParser, XUnitTotals

__all__ = [
    "DARWIN_PATTERNS",
    "NON_DARWIN_PATTERNS",
    "ExactResolver",
    "HeuristicResolver",
    "IdentityResolver",
    "PatternSet",
    "PendingFailure",
    "RunState",
    "SwiftTestingOutputParser",
    "XCTestOutputParser",
    "XUnitParser",
    "XUnitTotals",
    "patterns_for",
]
