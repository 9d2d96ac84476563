"""Tests for swift-testing event stream parser."""

import json
from collections.abc import Sequence
from typing import Any

import pytest

from testrun_sync.models.definition import Location, TestDefinition
from testrun_sync.models.result import TestMessage, TestOutcome
from testrun_sync.models.tree import TestNode, TestTree
from testrun_sync.parsers.identity import ExactResolver
from testrun_sync.parsers.run_state import RunState
from testrun_sync.parsers.swift_testing import SwiftTestingOutputParser
from testrun_sync.reconciler import reconcile, upsert_definition
from testrun_sync.reporting import TestRun

SUITE_FILE = "/package/Tests/PackageTests/MathSuite.swift"
ADDITION_ID = "PackageTests.MathSuite/addition()"
CASES_ID = "PackageTests.MathSuite/cases(_:)"
ADDITION_EVENT_ID = f"{ADDITION_ID}/MathSuite.swift:5:6"
CASES_EVENT_ID = f"{CASES_ID}/MathSuite.swift:10:6"


@pytest.fixture
def swift_tree() -> TestTree:
    """Tree with one swift-testing suite."""
    tree = TestTree()
    reconcile(
        tree,
        [
            TestDefinition(
                id="PackageTests",
                label="PackageTests",
                style="target",
                children=[
                    TestDefinition(
                        id="PackageTests.MathSuite",
                        label="MathSuite",
                        style="swift-testing",
                        location=Location(file=SUITE_FILE, line=3),
                        children=[
                            TestDefinition(
                                id=ADDITION_ID,
                                label="addition()",
                                style="swift-testing",
                                location=Location(file=SUITE_FILE, line=5),
                            ),
                            TestDefinition(
                                id=CASES_ID,
                                label="cases(_:)",
                                style="swift-testing",
                                location=Location(file=SUITE_FILE, line=10),
                            ),
                        ],
                    )
                ],
            )
        ],
    )
    return tree


@pytest.fixture
def swift_reporter(swift_tree: TestTree) -> TestRun:
    """Recording reporter over ``swift_tree``."""
    return TestRun(swift_tree)


@pytest.fixture
def run_state(swift_tree: TestTree, swift_reporter: TestRun) -> RunState:
    """State with both tests of the suite as candidates."""
    candidates = [swift_tree.find(ADDITION_ID), swift_tree.find(CASES_ID)]
    return RunState(
        tree=swift_tree,
        candidates=[node for node in candidates if node is not None],
        reporter=swift_reporter,
        resolver=ExactResolver(),
    )


@pytest.fixture
def parser(swift_tree: TestTree, run_state: RunState) -> SwiftTestingOutputParser:
    """Parser that adds parameterized cases to the tree and the run."""

    def add_cases(parent: TestNode, cases: Sequence[TestDefinition]) -> None:
        swift_tree.clear_children(parent)
        run_state.add_candidates(
            [upsert_definition(swift_tree, case, parent) for case in cases]
        )

    return SwiftTestingOutputParser(on_parameterized_cases=add_cases)


def event(kind: str, test_id: str, absolute: float, **fields: Any) -> str:
    payload = {
        "kind": kind,
        "testID": test_id,
        "instant": {"absolute": absolute, "since1970": 1700000000 + absolute},
        "messages": [],
        **fields,
    }
    return json.dumps({"kind": "event", "version": 0, "payload": payload})


def case(case_id: str, display_name: str) -> dict[str, str]:
    return {"id": case_id, "displayName": display_name}


def declaration(test_cases: Sequence[dict[str, str]]) -> str:
    return json.dumps(
        {
            "kind": "test",
            "version": 0,
            "payload": {
                "kind": "function",
                "id": CASES_EVENT_ID,
                "name": "cases(_:)",
                "isParameterized": True,
                "_testCases": list(test_cases),
                "sourceLocation": {"_filePath": SUITE_FILE, "line": 10, "column": 6},
            },
        }
    )


def issue(
    test_id: str,
    messages: Sequence[tuple[str, str]],
    test_case: dict[str, str] | None = None,
    **issue_fields: Any,
) -> str:
    fields: dict[str, Any] = {
        "issue": {
            "isKnown": False,
            "sourceLocation": {"_filePath": SUITE_FILE, "line": 7, "column": 9},
            **issue_fields,
        },
        "messages": [{"symbol": symbol, "text": text} for symbol, text in messages],
    }
    if test_case is not None:
        fields["_testCase"] = test_case
    return event("issueRecorded", test_id, 1.2, **fields)


def parse(
    parser: SwiftTestingOutputParser, run_state: RunState, lines: Sequence[str]
) -> None:
    for line in lines:
        parser.parse_line(line, run_state)


def test_passing_test_with_duration(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
    swift_reporter: TestRun,
) -> None:
    """Completes a test once even though both end events are reported."""
    parse(
        parser,
        run_state,
        [
            event("testStarted", ADDITION_EVENT_ID, 1.0),
            event("testCaseStarted", ADDITION_EVENT_ID, 1.0, _testCase=case("0", "")),
            event("testCaseEnded", ADDITION_EVENT_ID, 1.25, _testCase=case("0", "")),
            event("testEnded", ADDITION_EVENT_ID, 1.5),
        ],
    )

    node = swift_tree.find(ADDITION_ID)
    assert node is not None
    assert swift_reporter.outcome(node) == TestOutcome(status="passed", duration=0.25)
    assert node not in run_state.candidates


def test_parameterized_cases_become_passing_nodes(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
    swift_reporter: TestRun,
) -> None:
    """A parameterized test with two passing cases yields three passing nodes."""
    cases = [case("0", "1"), case("1", "2")]
    parse(
        parser,
        run_state,
        [
            declaration(cases),
            json.dumps({"kind": "event", "version": 0, "payload": {"kind": "runStarted"}}),
            event("testStarted", CASES_EVENT_ID, 1.0),
            event("testCaseStarted", CASES_EVENT_ID, 1.0, _testCase=cases[0]),
            event("testCaseEnded", CASES_EVENT_ID, 1.5, _testCase=cases[0]),
            event("testCaseStarted", CASES_EVENT_ID, 1.5, _testCase=cases[1]),
            event("testCaseEnded", CASES_EVENT_ID, 2.0, _testCase=cases[1]),
            event("testEnded", CASES_EVENT_ID, 2.5),
        ],
    )

    parent = swift_tree.find(CASES_ID)
    assert parent is not None
    children = swift_tree.children(parent)
    assert [child.id for child in children] == [f"{CASES_ID}/0", f"{CASES_ID}/1"]
    assert all(child.is_parameterized_result for child in children)
    assert [child.label for child in children] == ["1", "2"]
    assert swift_reporter.outcome(parent) == TestOutcome(status="passed", duration=1.5)
    for child in children:
        assert swift_reporter.outcome(child) == TestOutcome(status="passed", duration=0.5)


def test_case_without_codable_id_uses_display_name(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
) -> None:
    """Cases reported as ``argumentIDs: nil`` are identified by display name."""
    parse(parser, run_state, [declaration([case("argumentIDs: nil", "blue")])])

    parent = swift_tree.find(CASES_ID)
    assert parent is not None
    assert [child.id for child in swift_tree.children(parent)] == [f"{CASES_ID}/blue"]


def test_issue_on_case_fails_case_and_parent(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
    swift_reporter: TestRun,
) -> None:
    """Issues recorded on a case are recorded on its test as well."""
    cases = [case("0", "1"), case("1", "2")]
    parse(
        parser,
        run_state,
        [
            declaration(cases),
            event("testStarted", CASES_EVENT_ID, 1.0),
            event("testCaseStarted", CASES_EVENT_ID, 1.0, _testCase=cases[0]),
            event("testCaseEnded", CASES_EVENT_ID, 1.5, _testCase=cases[0]),
            event("testCaseStarted", CASES_EVENT_ID, 1.5, _testCase=cases[1]),
            issue(
                CASES_EVENT_ID,
                [("fail", "Expectation failed: (value → 2) == 1"), ("details", "value is 2")],
                test_case=cases[1],
            ),
            event("testCaseEnded", CASES_EVENT_ID, 2.0, _testCase=cases[1]),
            event("testEnded", CASES_EVENT_ID, 2.5),
        ],
    )

    parent = swift_tree.find(CASES_ID)
    assert parent is not None
    first, second = swift_tree.children(parent)
    expected = TestMessage(
        message="✘ Expectation failed: (value → 2) == 1\n↳ value is 2",
        location=Location(file=SUITE_FILE, line=7, column=9),
    )
    assert swift_reporter.outcome(first) == TestOutcome(status="passed", duration=0.5)
    assert swift_reporter.outcome(second) == TestOutcome(
        status="failed", duration=0.5, messages=[expected]
    )
    assert swift_reporter.outcome(parent) == TestOutcome(
        status="failed", duration=1.5, messages=[expected]
    )


def test_warning_does_not_fail_test(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
    swift_reporter: TestRun,
) -> None:
    """Warnings are forwarded as output and the test still passes."""
    parse(
        parser,
        run_state,
        [
            event("testStarted", ADDITION_EVENT_ID, 1.0),
            issue(ADDITION_EVENT_ID, [("warning", "Deprecated API")], severity="warning"),
            event("testEnded", ADDITION_EVENT_ID, 2.0),
        ],
    )

    node = swift_tree.find(ADDITION_ID)
    assert node is not None
    assert swift_reporter.outcome(node) == TestOutcome(status="passed", duration=1.0)
    assert "⚠ Deprecated API\n" in swift_reporter.output


def test_known_issue_does_not_fail_test(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
    swift_reporter: TestRun,
) -> None:
    """Known issues are kept but do not fail the test."""
    parse(
        parser,
        run_state,
        [
            event("testStarted", ADDITION_EVENT_ID, 1.0),
            issue(ADDITION_EVENT_ID, [("fail", "Known bug")], isKnown=True),
            event("testEnded", ADDITION_EVENT_ID, 2.0),
        ],
    )

    node = swift_tree.find(ADDITION_ID)
    assert node is not None
    outcome = swift_reporter.outcome(node)
    assert outcome is not None and outcome.status == "passed"


def test_skipped_test(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_tree: TestTree,
    swift_reporter: TestRun,
) -> None:
    """Reports skipped tests."""
    parse(parser, run_state, [event("testSkipped", ADDITION_EVENT_ID, 1.0)])

    node = swift_tree.find(ADDITION_ID)
    assert node is not None
    assert swift_reporter.outcome(node) == TestOutcome(status="skipped")


def test_run_started_callback(run_state: RunState) -> None:
    """Notifies when the run starts."""
    started: list[bool] = []
    parser = SwiftTestingOutputParser(on_run_started=lambda: started.append(True))

    parser.parse_line(
        json.dumps({"kind": "event", "version": 0, "payload": {"kind": "runStarted"}}),
        run_state,
    )

    assert started == [True]


@pytest.mark.parametrize(
    "line",
    [
        "",
        "not json",
        '{"kind": "event", "version": 0, "payload": {"kind": "valueAttached"}}',
        '{"kind": "unknown", "version": 0, "payload": {}}',
        '{"kind": "metadata", "version": 0, "payload": {"swiftVersion": "6.0"}}',
    ],
)
def test_ignores_unusable_lines(
    parser: SwiftTestingOutputParser,
    run_state: RunState,
    swift_reporter: TestRun,
    line: str,
) -> None:
    """Lines that are not known records change nothing."""
    candidates = list(run_state.candidates)

    parser.parse_line(line, run_state)

    assert run_state.candidates == candidates
    assert swift_reporter.summary().results == {}
