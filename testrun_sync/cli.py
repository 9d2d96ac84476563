"""CLI entry point for running a package's tests against a test tree."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from testrun_sync.config import RunnerConfig
from testrun_sync.definition_loader import load_test_definitions
from testrun_sync.models.result import RunSummary
from testrun_sync.models.tree import TestNode, TestTree
from testrun_sync.orchestrator import RunResult, TestRunOrchestrator
from testrun_sync.reconciler import dump_tree, reconcile
from testrun_sync.reporting import TestRun
from testrun_sync.selection import TestRunRequest

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "errored": "❗",
    "skipped": "⏭️",
    "started": "⏱️",
    "enqueued": "⏱️",
}


def log_results_summary(
    log: logging.Logger, summary: RunSummary, result: RunResult
) -> None:
    """Log a formatted summary of test outcomes."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for test_id, outcome in summary.results.items():
        symbol = STATUS_SYMBOLS.get(outcome.status, "?")
        if outcome.duration is not None:
            log.info("%s %s: %s (%.2fs)", symbol, test_id, outcome.status, outcome.duration)
        else:
            log.info("%s %s: %s", symbol, test_id, outcome.status)
        for message in outcome.messages:
            log.info("  Message: %s", message.message)

    log.info(
        "Run %s: %d passed, %d failed, %d skipped, %d incomplete",
        result.outcome,
        summary.count("passed"),
        summary.count("failed"),
        summary.count("skipped"),
        len(summary.incomplete),
    )
    if result.message:
        log.info("  Message: %s", result.message)


def format_output(summary: RunSummary, result: RunResult) -> dict[str, Any]:
    """Format run results for JSON output."""
    results: list[dict[str, Any]] = [
        {
            "id": test_id,
            "status": outcome.status,
            "duration": outcome.duration,
            "messages": [message.message for message in outcome.messages],
        }
        for test_id, outcome in summary.results.items()
    ]

    return {
        "outcome": result.outcome,
        "message": result.message,
        "total": len(results),
        "passed": summary.count("passed"),
        "failed": summary.count("failed"),
        "skipped": summary.count("skipped"),
        "errors": summary.count("errored"),
        "incomplete": list(summary.incomplete),
        "results": results,
    }


def find_nodes(
    log: logging.Logger, tree: TestTree, test_ids: Sequence[str]
) -> Sequence[TestNode]:
    """Look up tests by id, skipping unknown ids."""
    nodes: list[TestNode] = []
    for test_id in test_ids:
        if (node := tree.find(test_id)) is None:
            log.warning("Unknown test id: %s", test_id)
            continue
        nodes.append(node)
    return nodes


def save_state(tree: TestTree, path: Path) -> None:
    """Write the reconciled tree as a definitions file."""
    data = {
        "version": "1.0",
        "tests": [
            definition.model_dump(mode="json", exclude_defaults=True)
            for definition in dump_tree(tree)
        ],
    }
    path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))


async def run(
    definitions_path: Path,
    config_json: str,
    state_path: Path | None = None,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    scope_file: str | None = None,
) -> int:
    """Reconcile definitions, run the selected tests and return exit code."""
    log = logging.getLogger("testrun_sync")

    config = RunnerConfig(**json.loads(config_json))

    tree = TestTree()
    if state_path is not None and state_path.exists():
        log.info("Loading previous test tree from %s", state_path)
        reconcile(tree, await load_test_definitions(state_path))

    log.info("Loading test definitions from %s", definitions_path)
    reconcile(tree, await load_test_definitions(definitions_path), scope_file)

    if state_path is not None:
        save_state(tree, state_path)

    request = TestRunRequest(
        include=find_nodes(log, tree, include),
        exclude=find_nodes(log, tree, exclude),
    )
    reporter = TestRun(tree, record_duration=config.record_duration)
    orchestrator = TestRunOrchestrator(config=config, tree=tree, reporter=reporter)
    result = await orchestrator.run(request)

    summary = reporter.summary()
    log_results_summary(log, summary, result)
    print(json.dumps(format_output(summary, result), indent=2))

    return 1 if summary.has_failures or result.outcome != "completed" else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run tests and report per-test results")
    parser.add_argument(
        "--definitions",
        type=Path,
        required=True,
        help="YAML file with the discovered test targets",
    )
    parser.add_argument(
        "--config",
        required=True,
        help="JSON configuration for the runner",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="File keeping the reconciled test tree between invocations",
    )
    parser.add_argument(
        "--include",
        action="append",
        default=[],
        help="Test id to run (repeatable, default: all tests)",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Test id to leave out (repeatable)",
    )
    parser.add_argument(
        "--scope-file",
        default=None,
        help="Only remove tests declared in this file when reconciling",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            definitions_path=args.definitions,
            config_json=args.config,
            state_path=args.state,
            include=args.include,
            exclude=args.exclude,
            scope_file=args.scope_file,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
