"""Fixtures for unit tests."""

from collections.abc import Sequence

import pytest

from testrun_sync.models.definition import Location, TestDefinition
from testrun_sync.models.tree import TestNode, TestTree
from testrun_sync.reconciler import reconcile
from testrun_sync.reporting import TestRun


def xctest_targets() -> Sequence[TestDefinition]:
    """One XCTest target with two test classes."""
    math_file = "Tests/PackageTests/MathTests.swift"
    string_file = "Tests/PackageTests/StringTests.swift"
    return [
        TestDefinition(
            id="PackageTests",
            label="PackageTests",
            style="target",
            children=[
                TestDefinition(
                    id="PackageTests.MathTests",
                    label="MathTests",
                    style="XCTest",
                    location=Location(file=math_file, line=3),
                    children=[
                        TestDefinition(
                            id="PackageTests.MathTests/testAdd",
                            label="testAdd",
                            style="XCTest",
                            location=Location(file=math_file, line=4),
                        ),
                        TestDefinition(
                            id="PackageTests.MathTests/testSubtract",
                            label="testSubtract",
                            style="XCTest",
                            location=Location(file=math_file, line=8),
                        ),
                    ],
                ),
                TestDefinition(
                    id="PackageTests.StringTests",
                    label="StringTests",
                    style="XCTest",
                    location=Location(file=string_file, line=3),
                    children=[
                        TestDefinition(
                            id="PackageTests.StringTests/testJoin",
                            label="testJoin",
                            style="XCTest",
                            location=Location(file=string_file, line=4),
                        ),
                    ],
                ),
            ],
        )
    ]


@pytest.fixture
def tree() -> TestTree:
    """Tree reconciled from ``xctest_targets``."""
    tree = TestTree()
    reconcile(tree, xctest_targets())
    return tree


@pytest.fixture
def reporter(tree: TestTree) -> TestRun:
    """Recording reporter over ``tree``."""
    return TestRun(tree)


@pytest.fixture
def leaves(tree: TestTree) -> Sequence[TestNode]:
    """Test methods of ``tree`` in tree order."""
    return [node for node in tree.walk() if not node.children]


@pytest.fixture
def definitions() -> Sequence[TestDefinition]:
    """Definitions ``tree`` was reconciled from."""
    return xctest_targets()
