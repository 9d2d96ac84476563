"""State of one parser invocation over a test process's output."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from testrun_sync.models.definition import Location
from testrun_sync.models.result import TestMessage
from testrun_sync.models.tree import TestNode, TestTree
from testrun_sync.parsers.identity import ExactResolver, IdentityResolver
from testrun_sync.reporting import TestRunReporter

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class PendingFailure:
    """A failure message still collecting continuation lines."""

    index: int | None
    message: str
    file: str
    line: int
    complete: bool = False

    @property
    def location(self) -> Location:
        """Where the failure was reported."""
        return Location(file=self.file, line=self.line)


class RunState:
    """Attribution state threaded through every parser call of one run.

    Candidates are removed as soon as they reach a terminal state, so no later
    output can resolve to them and whatever is left at the end never
    finished. Indices into ``candidates`` are only valid until the next
    removal; the ones stored here are shifted on removal.
    """

    def __init__(
        self,
        *,
        tree: TestTree,
        candidates: Sequence[TestNode],
        reporter: TestRunReporter,
        resolver: IdentityResolver | None = None,
    ) -> None:
        self.tree = tree
        self.candidates = list(candidates)
        self.reporter = reporter
        self.resolver = resolver or ExactResolver()
        self.current_test_index: int | None = None
        self.pending_failure: PendingFailure | None = None
        self.suite_stack: list[str] = []
        self.excess: str | None = None
        self.last_completed: TestNode | None = None
        self._issues: dict[int, list[TestMessage]] = {}
        self._start_times: dict[int, float] = {}
        self._failed: set[int] = set()

    @property
    def current_test(self) -> TestNode | None:
        """Test that started but has not finished."""
        if self.current_test_index is None:
            return None
        return self.candidates[self.current_test_index]

    def test_index(self, name: str, filename: str | None = None) -> int | None:
        """Resolve a reported test name to a candidate index."""
        index = self.resolver.index_of(self.candidates, name, filename)
        if index is None:
            log.debug("No candidate for reported test %s", name)
        return index

    def index_of_id(self, id: str) -> int | None:
        """Resolve an exact test id to a candidate index."""
        return ExactResolver().index_of(self.candidates, id)

    def add_candidates(self, nodes: Sequence[TestNode]) -> None:
        """Add tests discovered during the run and enqueue them."""
        for node in nodes:
            self.candidates.append(node)
            self.reporter.enqueued(node)

    def started(self, index: int, start_time: float | None = None) -> None:
        """Mark the candidate at ``index`` as running."""
        node = self.candidates[index]
        self.reporter.started(node)
        self.current_test_index = index
        if start_time is not None:
            self._start_times[node.key] = start_time

    def record_issue(
        self,
        index: int,
        message: str,
        location: Location | None = None,
        *,
        is_failure: bool = True,
    ) -> None:
        """Attach a diagnostic to the candidate at ``index``."""
        node = self.candidates[index]
        self._issues.setdefault(node.key, []).append(
            TestMessage(message=message, location=location, is_failure=is_failure)
        )

    def completed(
        self,
        index: int,
        *,
        duration: float | None = None,
        timestamp: float | None = None,
    ) -> None:
        """Finish the candidate at ``index``.

        The test fails when a failure issue was recorded against it or one of
        its children failed, and passes otherwise. Without an explicit
        ``duration`` it is computed from ``timestamp`` and the start time.
        """
        node = self.candidates[index]
        start_time = self._start_times.pop(node.key, None)
        if duration is None and timestamp is not None and start_time is not None:
            duration = timestamp - start_time

        messages = self._issues.pop(node.key, [])
        child_failed = any(child.key in self._failed for child in self.tree.children(node))
        if child_failed or any(message.is_failure for message in messages):
            self._failed.add(node.key)
            self.reporter.failed(node, messages, duration)
        else:
            for message in messages:
                self.reporter.append_output(f"{message.message}\n", node)
            self.reporter.passed(node, duration)

        self._finish(index)

    def fail_current_test(self, message: str) -> TestNode | None:
        """Fail the running test, as when the test process died under it."""
        index = self.current_test_index
        if index is None:
            return None
        node = self.candidates[index]
        self.record_issue(index, message)
        self.completed(index)
        return node

    def errored(self, index: int, message: str, duration: float | None = None) -> None:
        """Finish the candidate at ``index`` as unable to run."""
        node = self.candidates[index]
        self._start_times.pop(node.key, None)
        messages = [*self._issues.pop(node.key, []), TestMessage(message=message)]
        self._failed.add(node.key)
        self.reporter.errored(node, messages, duration)
        self._finish(index)

    def skipped(self, index: int) -> None:
        """Mark the candidate at ``index`` as skipped."""
        self.reporter.skipped(self.candidates[index])
        self._finish(index)

    def complete_groups(self) -> None:
        """Finish groups whose children have all finished.

        Groups are enqueued before their members, so walking the candidates
        backwards finishes nested groups from the inside out. A group fails
        when one of its children failed.
        """
        for index in range(len(self.candidates) - 1, -1, -1):
            node = self.candidates[index]
            children = [
                child
                for child in self.tree.children(node)
                if not child.is_parameterized_result
            ]
            if not children:
                continue
            pending = {candidate.key for candidate in self.candidates}
            if not any(child.key in pending for child in children):
                self.completed(index)

    def started_suite(self, name: str) -> None:
        """Record that a suite began."""
        self.suite_stack.append(name)

    def passed_suite(self, name: str) -> None:
        """Record that a suite passed."""
        self._ended_suite(name, failed=False)

    def failed_suite(self, name: str) -> None:
        """Record that a suite failed."""
        self._ended_suite(name, failed=True)

    def _ended_suite(self, name: str, *, failed: bool) -> None:
        for position in range(len(self.suite_stack) - 1, -1, -1):
            if self.suite_stack[position] == name:
                del self.suite_stack[position]
                break

        # Suite lines do not say which target they belong to. Only attribute
        # them to the suite of the test that finished last; this is unreliable
        # when output from parallel tests interleaves.
        if self.last_completed is None:
            return
        suite = self.tree.parent(self.last_completed)
        if suite is None or not suite.id.endswith(f".{name}"):
            return

        if failed:
            self.reporter.failed(suite, [])
        else:
            self.reporter.passed(suite)
        for index, node in enumerate(self.candidates):
            if node is suite:
                self._remove(index)
                break

    def _finish(self, index: int) -> None:
        self.last_completed = self.candidates[index]
        if self.current_test_index == index:
            self.current_test_index = None
        self._remove(index)

    def _remove(self, index: int) -> None:
        del self.candidates[index]
        self.current_test_index = _shift(self.current_test_index, index)
        if self.pending_failure is not None:
            self.pending_failure.index = _shift(self.pending_failure.index, index)


def _shift(stored: int | None, removed: int) -> int | None:
    if stored is None or stored < removed:
        return stored
    if stored == removed:
        return None
    return stored - 1
