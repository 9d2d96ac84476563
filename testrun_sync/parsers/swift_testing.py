"""Parser for the swift-testing JSON event stream."""

import logging
from collections.abc import Callable, Mapping, Sequence

from pydantic import ValidationError

from testrun_sync.models.definition import (
    PARAMETERIZED_TEST_RESULT_TAG,
    TestDefinition,
)
from testrun_sync.models.tree import TestNode
from testrun_sync.parsers.events import (
    EventRecord,
    IssueRecorded,
    RunStarted,
    TestCase,
    TestCaseEnded,
    TestCaseStarted,
    TestDeclaration,
    TestEnded,
    TestRecord,
    TestSkipped,
    TestStarted,
    stream_record_adapter,
)
from testrun_sync.parsers.run_state import RunState
from testrun_sync.reconciler import strip_file_suffix

log = logging.getLogger(__name__)

# Case id reported for arguments that are not Codable.
UNSERIALIZABLE_CASE_ID = "argumentIDs: nil"

DETAIL_MARKER = "↳"

SYMBOL_MARKERS: Mapping[str, str] = {
    "default": "◇",
    "pass": "✔",
    "passWithKnownIssue": "✔",
    "fail": "✘",
    "skip": "⤿",
    "warning": "⚠",
    "difference": "±",
    "details": DETAIL_MARKER,
}

type ParameterizedCasesCallback = Callable[[TestNode, Sequence[TestDefinition]], None]


class SwiftTestingOutputParser:
    """Applies swift-testing event records to a run, one line at a time.

    Args:
        on_run_started: Called when the run begins, after every test was
            declared
        on_parameterized_cases: Called with a parameterized test and one
            definition per argument combination before any of them run; the
            callee is expected to add the cases to the tree and the run's
            candidates

    """

    def __init__(
        self,
        *,
        on_run_started: Callable[[], None] | None = None,
        on_parameterized_cases: ParameterizedCasesCallback | None = None,
    ) -> None:
        self.on_run_started = on_run_started
        self.on_parameterized_cases = on_parameterized_cases
        self._test_cases: dict[str, dict[str, TestCase]] = {}
        self._completed: set[int] = set()

    def parse_line(self, line: str, run_state: RunState) -> None:
        """Apply one JSON record to ``run_state``; anything else is ignored."""
        if not line.strip():
            return
        try:
            record = stream_record_adapter.validate_json(line)
        except ValidationError:
            log.debug("Dropping unrecognised event stream record: %s", line)
            return

        if isinstance(record, TestRecord):
            self._declare_test(record.payload, run_state)
        elif isinstance(record, EventRecord):
            self._apply_event(record, run_state)

    def _declare_test(self, test: TestDeclaration, run_state: RunState) -> None:
        if test.kind != "function" or not test.is_parameterized or not test.test_cases:
            return

        self._test_cases[test.id] = {_case_id(case): case for case in test.test_cases}

        name = strip_file_suffix(test.id)
        index = run_state.test_index(name)
        if index is None or self.on_parameterized_cases is None:
            return

        cases = [
            TestDefinition(
                id=f"{name}/{_case_id(case)}",
                label=case.display_name,
                style="swift-testing",
                tags=[PARAMETERIZED_TEST_RESULT_TAG],
                disabled=True,
                sort_text=f"{position:08d}",
            )
            for position, case in enumerate(test.test_cases)
        ]
        self.on_parameterized_cases(run_state.candidates[index], cases)

    def _apply_event(self, record: EventRecord, run_state: RunState) -> None:
        payload = record.payload
        if isinstance(payload, RunStarted):
            if self.on_run_started is not None:
                self.on_run_started()
            return
        if payload.test_id is None:
            return

        test_id = payload.test_id
        timestamp = payload.instant.absolute if payload.instant else None
        if isinstance(payload, IssueRecorded):
            self._record_issue(payload, test_id, run_state)
        elif isinstance(payload, TestSkipped):
            index = run_state.test_index(strip_file_suffix(test_id))
            if index is not None:
                run_state.skipped(index)
        elif isinstance(payload, TestStarted | TestCaseStarted):
            index = run_state.test_index(self._test_name(test_id, payload.test_case))
            if index is not None:
                run_state.started(index, timestamp)
        elif isinstance(payload, TestEnded | TestCaseEnded):
            index = run_state.test_index(self._test_name(test_id, payload.test_case))
            if index is not None:
                self._complete(index, timestamp, run_state)

    def _record_issue(
        self, payload: IssueRecorded, test_id: str, run_state: RunState
    ) -> None:
        issue = payload.issue
        location = issue.source_location.to_location() if issue.source_location else None
        symbol = payload.messages[0].symbol if payload.messages else "default"
        is_failure = not issue.is_known and issue.severity != "warning" and symbol != "warning"
        message = _render_messages(payload)

        test_name = strip_file_suffix(test_id)
        case_name = self._test_name(test_id, payload.test_case)
        names = [case_name] if case_name == test_name else [case_name, test_name]
        for name in names:
            index = run_state.test_index(name)
            if index is not None:
                run_state.record_issue(index, message, location, is_failure=is_failure)

    def _complete(self, index: int, timestamp: float | None, run_state: RunState) -> None:
        # A test without cases reports both testCaseEnded and testEnded.
        node = run_state.candidates[index]
        if node.key in self._completed:
            return
        self._completed.add(node.key)
        run_state.completed(index, timestamp=timestamp)

    def _test_name(self, test_id: str, test_case: TestCase | None) -> str:
        name = strip_file_suffix(test_id)
        if test_case is None:
            return name
        case_id = _case_id(test_case)
        if case_id in self._test_cases.get(test_id, {}):
            return f"{name}/{case_id}"
        return name


def _case_id(test_case: TestCase) -> str:
    # Not unique when two cases share a display name.
    if test_case.id == UNSERIALIZABLE_CASE_ID:
        return test_case.display_name
    return test_case.id


def _render_messages(payload: IssueRecorded) -> str:
    lines = []
    for position, message in enumerate(payload.messages):
        marker = SYMBOL_MARKERS.get(message.symbol, SYMBOL_MARKERS["default"])
        lines.append(f"{marker if position == 0 else DETAIL_MARKER} {message.text}")
    return "\n".join(lines)
