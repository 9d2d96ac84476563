"""Parser for XCTest console output."""

import re
from collections.abc import Callable, Mapping, Sequence

from testrun_sync.parsers.patterns import LineKind, PatternSet
from testrun_sync.parsers.run_state import PendingFailure, RunState


class XCTestOutputParser:
    """Turns chunks of XCTest output into test state transitions.

    Output may arrive split at arbitrary points; an unterminated last line is
    kept in ``RunState.excess`` and completed by the next chunk.

    Each batch of complete lines is read twice. The first pass handles
    everything except passed tests, in order. The second pass only handles
    passed tests. Non-Darwin output does not name the target, so two targets
    can print the same ``Class.test``; failures carry a file name that helps
    to pick the right test, and taking them out of the candidates first keeps
    a same-named passing test from being attributed to the failed one.
    """

    def __init__(self, patterns: PatternSet) -> None:
        self.patterns = patterns
        self._handlers: Mapping[LineKind, Callable[[re.Match[str], RunState], None]] = {
            "started": self._start_test,
            "failed": self._fail_test,
            "error": self._start_error_message,
            "skipped": self._skip_test,
            "suite_started": self._start_suite,
            "suite_passed": self._pass_suite,
            "suite_failed": self._fail_suite,
        }

    def parse_result(self, output: str, run_state: RunState) -> None:
        """Apply a chunk of output to ``run_state``."""
        lines = self._split_lines(output, run_state)

        for line in lines:
            for kind, pattern in self.patterns.first_pass():
                if match := pattern.match(line):
                    self._handlers[kind](match, run_state)
                    break
            else:
                # Unrecognised output continues the last error message.
                self._continue_error_message(line, run_state)

        for line in lines:
            if match := self.patterns.passed.match(line):
                self._pass_test(match, run_state)

    def finish(self, run_state: RunState) -> None:
        """Apply the unterminated last line once the output has ended."""
        if run_state.excess:
            self.parse_result("\n", run_state)

    def _split_lines(self, output: str, run_state: RunState) -> Sequence[str]:
        text = output.replace("\r\n", "\n")
        lines = text.split("\n")
        if run_state.excess:
            lines[0] = run_state.excess + lines[0]
        if lines and lines[-1] == "":
            lines.pop()

        if text.endswith("\n"):
            run_state.excess = None
        else:
            run_state.excess = lines.pop() if lines else None
        return lines

    def _start_test(self, match: re.Match[str], run_state: RunState) -> None:
        index = run_state.test_index(f"{match[1]}/{match[2]}")
        if index is not None:
            run_state.started(index)
            run_state.pending_failure = None

    def _pass_test(self, match: re.Match[str], run_state: RunState) -> None:
        index = run_state.test_index(f"{match[1]}/{match[2]}")
        if index is not None:
            run_state.completed(index, duration=float(match[3]))

    def _fail_test(self, match: re.Match[str], run_state: RunState) -> None:
        index = run_state.test_index(f"{match[1]}/{match[2]}")
        if index is not None:
            failure = run_state.pending_failure
            if failure is not None:
                run_state.record_issue(index, failure.message, failure.location)
            else:
                run_state.record_issue(index, "Failed")
            run_state.completed(index, duration=float(match[3]))
        run_state.pending_failure = None

    def _start_error_message(self, match: re.Match[str], run_state: RunState) -> None:
        file, line = match[1], int(match[2])
        index = run_state.test_index(f"{match[3]}/{match[4]}", file)

        # Close a message still being captured before starting the next one.
        failure = run_state.pending_failure
        if failure is not None and not failure.complete:
            if failure.index is not None:
                run_state.record_issue(failure.index, failure.message, failure.location)
            failure.complete = True

        run_state.pending_failure = PendingFailure(
            index=index, message=match[5], file=file, line=line
        )

    def _continue_error_message(self, line: str, run_state: RunState) -> None:
        failure = run_state.pending_failure
        if failure is not None and not failure.complete:
            failure.message += f"\n{line}"

    def _skip_test(self, match: re.Match[str], run_state: RunState) -> None:
        index = run_state.test_index(f"{match[3]}/{match[4]}", match[1])
        if index is not None:
            run_state.skipped(index)
        run_state.pending_failure = None

    def _start_suite(self, match: re.Match[str], run_state: RunState) -> None:
        run_state.started_suite(match[1])

    def _pass_suite(self, match: re.Match[str], run_state: RunState) -> None:
        run_state.passed_suite(match[1])

    def _fail_suite(self, match: re.Match[str], run_state: RunState) -> None:
        run_state.failed_suite(match[1])
