"""Models for test execution results."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

from testrun_sync.models.definition import Location

type TestStatus = Literal["enqueued", "started", "passed", "failed", "skipped", "errored"]


@dataclass(frozen=True, kw_only=True)
class TestMessage:
    """A diagnostic attached to a test.

    Warnings and known issues are kept with ``is_failure`` unset so they can be
    shown without failing the test.
    """

    __test__ = False

    message: str
    location: Location | None = None
    is_failure: bool = True


@dataclass(frozen=True, kw_only=True)
class TestOutcome:
    """Latest state of a single test within a run."""

    __test__ = False

    status: TestStatus
    duration: float | None = None
    messages: Sequence[TestMessage] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Totals and per-test outcomes of a finished run."""

    results: Mapping[str, TestOutcome]
    incomplete: Sequence[str] = field(default_factory=list)

    def count(self, status: TestStatus) -> int:
        """Number of tests that ended in ``status``."""
        return sum(1 for outcome in self.results.values() if outcome.status == status)

    @property
    def has_failures(self) -> bool:
        """Whether any test failed or errored."""
        return any(
            outcome.status in {"failed", "errored"} for outcome in self.results.values()
        )
