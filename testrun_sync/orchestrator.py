"""Test orchestrator for running selected tests of a package."""

import asyncio
import logging
import signal
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from testrun_sync.config import RunnerConfig
from testrun_sync.models.definition import TestDefinition
from testrun_sync.models.tree import TestNode, TestTree
from testrun_sync.parsers.event_stream import follow_lines
from testrun_sync.parsers.identity import ExactResolver, HeuristicResolver, IdentityResolver
from testrun_sync.parsers.patterns import patterns_for
from testrun_sync.parsers.run_state import RunState
from testrun_sync.parsers.swift_testing import SwiftTestingOutputParser
from testrun_sync.parsers.xctest import XCTestOutputParser
from testrun_sync.parsers.xunit import XUnitParser
from testrun_sync.process import OutputCallback, ProcessExit, ProcessInvocation, run_process
from testrun_sync.reconciler import upsert_definition
from testrun_sync.reporting import TestRunReporter
from testrun_sync.selection import TestFilter, TestRunArguments, TestRunRequest

log = logging.getLogger(__name__)

type RunOutcome = Literal["completed", "cancelled", "crashed", "error"]

type Launcher = Callable[
    [ProcessInvocation, OutputCallback, OutputCallback, asyncio.Event],
    Awaitable[ProcessExit],
]

CRASH_MESSAGE = "Test did not complete."


@dataclass(frozen=True, kw_only=True)
class RunResult:
    """How a test run ended.

    Test failures are reported per test and still count as ``completed``.
    ``message`` describes why a run did not complete.
    """

    outcome: RunOutcome
    message: str | None = None


@dataclass(frozen=True, kw_only=True)
class TestRunOrchestrator:
    """Runs the selected tests of one package and reports their progress."""

    __test__ = False

    config: RunnerConfig
    tree: TestTree
    reporter: TestRunReporter
    launcher: Launcher = run_process

    async def run(
        self,
        request: TestRunRequest,
        cancel: asyncio.Event | None = None,
    ) -> RunResult:
        """Run the tests selected by ``request``.

        XCTests run first, then swift-testing tests, each with its own
        process and parser.

        Args:
            request: Tests to include and exclude
            cancel: Set to stop the run early

        Returns:
            Outcome of the run; per-test results go to the reporter

        """
        cancel = cancel or asyncio.Event()
        arguments = TestRunArguments.from_request(self.tree, request)
        if not arguments.test_items:
            log.info("No tests selected")
            return RunResult(outcome="completed")

        log.info("Running %d test item(s)", len(arguments.test_items))
        for node in arguments.test_items:
            self.reporter.enqueued(node)

        if self.config.build_command:
            result = await self._build(self.config.build_command, cancel)
            if result is not None:
                return result

        result = RunResult(outcome="completed")
        if arguments.has_xctests:
            result = await self._run_xctests(arguments, cancel)
            if result.outcome != "completed":
                return result
        if arguments.has_swift_testing_tests:
            result = await self._run_swift_testing(arguments, cancel)

        log.info("Test run finished: %s", result.outcome)
        return result

    async def _build(self, command: Sequence[str], cancel: asyncio.Event) -> RunResult | None:
        log.info("Building tests: %s", " ".join(command))
        invocation = self._invocation(command)
        try:
            exit = await self.launcher(
                invocation, self._append_output, self._append_output, cancel
            )
        except OSError as e:
            log.error("Failed to launch build: %s", e, exc_info=e)
            return RunResult(outcome="error", message=f"Failed to launch build: {e}")

        if exit.killed:
            return RunResult(outcome="cancelled")
        if exit.returncode != 0:
            log.warning("Build failed with exit code %d", exit.returncode)
            return RunResult(
                outcome="error", message=f"Build failed with exit code {exit.returncode}"
            )
        return None

    async def _run_xctests(
        self, arguments: TestRunArguments, cancel: asyncio.Event
    ) -> RunResult:
        run_state = RunState(
            tree=self.tree,
            candidates=arguments.items_for("XCTest"),
            reporter=self.reporter,
            resolver=self._xctest_resolver(),
        )
        if self.config.parallel:
            return await self._run_xctests_parallel(arguments, run_state, cancel)

        parser = XCTestOutputParser(patterns_for(self.config.is_darwin))

        def parse_output(text: str) -> None:
            self.reporter.append_output(text)
            parser.parse_result(text, run_state)

        if self.config.xctest_binary is not None:
            test_list = ",".join(item.id for item in arguments.xctest_filters)
            args = [str(self.config.xctest_binary)]
            if test_list and self.config.is_darwin:
                args.extend(["-XCTest", test_list])
            elif test_list:
                args.append(test_list)
            invocation = self._invocation(args, kill_signal=signal.SIGKILL)
            # Darwin XCTest writes its progress to standard error.
            if self.config.is_darwin:
                on_stdout, on_stderr = self._append_output, parse_output
            else:
                on_stdout, on_stderr = parse_output, self._append_output
        else:
            invocation = self._invocation(
                [
                    self.config.swift_executable,
                    "test",
                    "--disable-swift-testing",
                    *_filter_args(arguments.xctest_filters),
                ]
            )
            on_stdout, on_stderr = parse_output, self._append_output

        exit = await self._launch(invocation, on_stdout, on_stderr, cancel)
        if isinstance(exit, RunResult):
            return exit
        parser.finish(run_state)
        return self._result_of(exit, run_state)

    async def _run_xctests_parallel(
        self,
        arguments: TestRunArguments,
        run_state: RunState,
        cancel: asyncio.Event,
    ) -> RunResult:
        with tempfile.TemporaryDirectory(prefix="testrun-sync-") as directory:
            xunit_path = Path(directory) / "xunit.xml"
            invocation = self._invocation(
                [
                    self.config.swift_executable,
                    "test",
                    "--parallel",
                    "--disable-swift-testing",
                    "--xunit-output",
                    str(xunit_path),
                    *_filter_args(arguments.xctest_filters),
                ]
            )
            exit = await self._launch(
                invocation, self._append_output, self._append_output, cancel
            )
            if isinstance(exit, RunResult):
                return exit
            result = self._result_of(exit, run_state)
            if result.outcome != "completed":
                return result

            if not xunit_path.exists():
                log.warning("Parallel run wrote no xUnit output at %s", xunit_path)
                return result
            totals = XUnitParser().parse(xunit_path.read_text(), run_state)
            if totals is not None:
                log.info(
                    "xUnit totals: tests=%d failures=%d errors=%d",
                    totals.tests,
                    totals.failures,
                    totals.errors,
                )
            run_state.complete_groups()
            return result

    async def _run_swift_testing(
        self, arguments: TestRunArguments, cancel: asyncio.Event
    ) -> RunResult:
        run_state = RunState(
            tree=self.tree,
            candidates=arguments.items_for("swift-testing"),
            reporter=self.reporter,
            resolver=ExactResolver(),
        )

        def add_parameterized_cases(
            parent: TestNode, cases: Sequence[TestDefinition]
        ) -> None:
            self.tree.clear_children(parent)
            nodes = [upsert_definition(self.tree, case, parent) for case in cases]
            run_state.add_candidates(nodes)

        parser = SwiftTestingOutputParser(on_parameterized_cases=add_parameterized_cases)

        with tempfile.TemporaryDirectory(prefix="testrun-sync-") as directory:
            events_path = Path(directory) / "events.jsonl"
            invocation = self._invocation(
                [
                    self.config.swift_executable,
                    "test",
                    "--enable-swift-testing",
                    "--disable-xctest",
                    "--experimental-event-stream-output",
                    str(events_path),
                    "--experimental-event-stream-version",
                    "0",
                    *_filter_args(arguments.swift_testing_filters),
                ]
            )

            done = asyncio.Event()

            async def read_events() -> None:
                async for line in follow_lines(
                    events_path, done, self.config.event_poll_interval
                ):
                    parser.parse_line(line, run_state)

            reader = asyncio.create_task(read_events())
            try:
                exit = await self._launch(
                    invocation, self._append_output, self._append_output, cancel
                )
            finally:
                done.set()
                await reader

            # Events written before the process ended are parsed by now.
            if isinstance(exit, RunResult):
                return exit
            return self._result_of(exit, run_state)

    async def _launch(
        self,
        invocation: ProcessInvocation,
        on_stdout: OutputCallback,
        on_stderr: OutputCallback,
        cancel: asyncio.Event,
    ) -> ProcessExit | RunResult:
        """Run the test process, or describe why it could not be started."""
        try:
            return await self.launcher(invocation, on_stdout, on_stderr, cancel)
        except OSError as e:
            log.error("Failed to launch %s: %s", invocation.args[0], e, exc_info=e)
            return RunResult(outcome="error", message=f"Failed to launch tests: {e}")

    def _result_of(self, exit: ProcessExit, run_state: RunState) -> RunResult:
        if exit.killed:
            self.reporter.append_output("\nProcess killed.\n")
            return RunResult(outcome="cancelled")

        # Exit code 1 means some tests failed.
        if exit.returncode in (0, 1):
            return RunResult(outcome="completed")

        if exit.signal is not None:
            name = _signal_name(exit.signal)
            log.warning("Test process crashed with signal %s", name)
            message = f"Test process crashed with signal {name}"
            self.reporter.append_output("\nProcess crashed.\n")
            crash_message = CRASH_MESSAGE
            if exit.stderr_tail:
                crash_message = f"{CRASH_MESSAGE}\n{exit.stderr_tail}"
            if (node := run_state.fail_current_test(crash_message)) is not None:
                log.warning("Test %s did not complete", node.id)
            return RunResult(outcome="crashed", message=message)

        log.warning("Test process exited with code %d", exit.returncode)
        return RunResult(
            outcome="error", message=f"Test process exited with code {exit.returncode}"
        )

    def _invocation(
        self, args: Sequence[str], kill_signal: int = signal.SIGINT
    ) -> ProcessInvocation:
        return ProcessInvocation(
            args=list(args),
            cwd=self.config.package_path,
            env=self.config.env,
            kill_signal=kill_signal,
        )

    def _xctest_resolver(self) -> IdentityResolver:
        if self.config.is_darwin:
            return ExactResolver()
        return HeuristicResolver(self.tree, self.config.package_path, self.config.targets)

    def _append_output(self, text: str) -> None:
        self.reporter.append_output(text)


def _filter_args(filters: Sequence[TestFilter]) -> list[str]:
    return [arg for item in filters for arg in ("--filter", item.as_pattern())]


def _signal_name(number: int) -> str:
    try:
        return signal.Signals(number).name
    except ValueError:
        return str(number)
