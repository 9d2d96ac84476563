"""Reporting of test state transitions during a run."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from testrun_sync.models.result import RunSummary, TestMessage, TestOutcome, TestStatus
from testrun_sync.models.tree import TestNode, TestTree

log = logging.getLogger(__name__)

SKIPPED_TAG = "skipped"

# Tags that describe the outcome of the last run rather than the test itself.
RUN_TAGS = frozenset({SKIPPED_TAG})


class TestRunReporter(ABC):
    """Receiver of test state transitions, such as an editor's test view.

    Durations are in seconds.
    """

    __test__ = False

    @abstractmethod
    def enqueued(self, node: TestNode) -> None:
        """Mark ``node`` as queued to run."""

    @abstractmethod
    def started(self, node: TestNode) -> None:
        """Mark ``node`` as running."""

    @abstractmethod
    def passed(self, node: TestNode, duration: float | None = None) -> None:
        """Mark ``node`` as passed."""

    @abstractmethod
    def failed(
        self,
        node: TestNode,
        messages: Sequence[TestMessage],
        duration: float | None = None,
    ) -> None:
        """Mark ``node`` as failed with its diagnostics."""

    @abstractmethod
    def skipped(self, node: TestNode) -> None:
        """Mark ``node`` as skipped."""

    @abstractmethod
    def errored(
        self,
        node: TestNode,
        messages: Sequence[TestMessage],
        duration: float | None = None,
    ) -> None:
        """Mark ``node`` as unable to run."""

    @abstractmethod
    def append_output(self, output: str, node: TestNode | None = None) -> None:
        """Forward raw process output, optionally tied to a test."""


class TestRun(TestRunReporter):
    """Reporter that records the latest outcome of every test in a run."""

    def __init__(self, tree: TestTree, *, record_duration: bool = True) -> None:
        self.tree = tree
        self.record_duration = record_duration
        self.output: list[str] = []
        self._outcomes: dict[int, tuple[TestNode, TestOutcome]] = {}
        self._reset_tags()

    def outcome(self, node: TestNode) -> TestOutcome | None:
        """Latest outcome recorded for ``node``."""
        entry = self._outcomes.get(node.key)
        return None if entry is None else entry[1]

    def enqueued(self, node: TestNode) -> None:
        self._record(node, TestOutcome(status="enqueued"))

    def started(self, node: TestNode) -> None:
        log.debug("Test started: %s", node.id)
        self._record(node, TestOutcome(status="started"))

    def passed(self, node: TestNode, duration: float | None = None) -> None:
        log.debug("Test passed: %s", node.id)
        self._record(node, TestOutcome(status="passed", duration=self._duration(duration)))

    def failed(
        self,
        node: TestNode,
        messages: Sequence[TestMessage],
        duration: float | None = None,
    ) -> None:
        log.debug("Test failed: %s", node.id)
        self._record(
            node,
            TestOutcome(
                status="failed",
                duration=self._duration(duration),
                messages=list(messages),
            ),
        )

    def skipped(self, node: TestNode) -> None:
        log.debug("Test skipped: %s", node.id)
        if SKIPPED_TAG not in node.tags:
            node.tags.append(SKIPPED_TAG)
        self._record(node, TestOutcome(status="skipped"))

    def errored(
        self,
        node: TestNode,
        messages: Sequence[TestMessage],
        duration: float | None = None,
    ) -> None:
        log.debug("Test errored: %s", node.id)
        self._record(
            node,
            TestOutcome(
                status="errored",
                duration=self._duration(duration),
                messages=list(messages),
            ),
        )

    def append_output(self, output: str, node: TestNode | None = None) -> None:
        self.output.append(output)

    def summary(self) -> RunSummary:
        """Outcomes keyed by test id, plus tests that never reached an end state."""
        pending: set[TestStatus] = {"enqueued", "started"}
        return RunSummary(
            results={node.id: outcome for node, outcome in self._outcomes.values()},
            incomplete=[
                node.id
                for node, outcome in self._outcomes.values()
                if outcome.status in pending
            ],
        )

    def _record(self, node: TestNode, outcome: TestOutcome) -> None:
        self._outcomes[node.key] = (node, outcome)

    def _duration(self, duration: float | None) -> float | None:
        return duration if self.record_duration else None

    def _reset_tags(self) -> None:
        for node in self.tree.walk():
            node.tags = [tag for tag in node.tags if tag not in RUN_TAGS]
