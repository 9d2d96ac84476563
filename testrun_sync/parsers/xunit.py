"""Parser for the xUnit summary written by ``swift test --parallel``."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from testrun_sync.parsers.run_state import RunState

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class XUnitTotals:
    """Counts from the summary's ``testsuite`` elements."""

    tests: int = 0
    failures: int = 0
    errors: int = 0


class XUnitParser:
    """Applies a finished parallel run's xUnit document to a run.

    Parallel output interleaves, so results are taken from the summary
    written at exit instead of from the console.
    """

    def parse(self, document: str, run_state: RunState) -> XUnitTotals | None:
        """Record the outcome of every test case in ``document``.

        Args:
            document: xUnit XML text
            run_state: State of the run the document belongs to

        Returns:
            Totals of all suites, or None when the document is malformed

        """
        try:
            root = ET.fromstring(document)
        except ET.ParseError as e:
            log.warning("Malformed xUnit document: %s", e)
            return None

        tests = failures = errors = 0
        for suite in root.iter("testsuite"):
            tests += _int(suite.get("tests"))
            failures += _int(suite.get("failures"))
            errors += _int(suite.get("errors"))

        for case in root.iter("testcase"):
            self._apply_case(case, run_state)

        return XUnitTotals(tests=tests, failures=failures, errors=errors)

    def _apply_case(self, case: ET.Element, run_state: RunState) -> None:
        id = f"{case.get('classname', '')}/{case.get('name', '')}"
        index = run_state.index_of_id(id)
        if index is None:
            log.debug("No candidate for xUnit test case %s", id)
            return

        duration = _float(case.get("time"))
        if (failure := case.find("failure")) is not None:
            run_state.record_issue(index, failure.get("message") or "Failed")
            run_state.completed(index, duration=duration)
        elif (error := case.find("error")) is not None:
            run_state.errored(index, error.get("message") or "Error", duration)
        elif case.find("skipped") is not None:
            run_state.skipped(index)
        else:
            run_state.completed(index, duration=duration)


def _int(value: str | None) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        log.debug("Ignoring malformed xUnit count %r", value)
        return 0


def _float(value: str | None) -> float | None:
    try:
        return float(value) if value else None
    except ValueError:
        log.debug("Ignoring malformed xUnit time %r", value)
        return None
