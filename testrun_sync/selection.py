"""Derive the candidate test list and filter arguments for a test run."""

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from testrun_sync.models.tree import TestNode, TestTree


@dataclass(frozen=True, kw_only=True)
class TestRunRequest:
    """Which tests to run.

    An empty include list means every known test.
    """

    __test__ = False

    include: Sequence[TestNode] = field(default_factory=list)
    exclude: Sequence[TestNode] = field(default_factory=list)

    @property
    def is_filtered(self) -> bool:
        """Whether the request narrows the run down from all tests."""
        return bool(self.include) or bool(self.exclude)


@dataclass(frozen=True, kw_only=True)
class TestFilter:
    """One selected test or whole group, as passed to the test driver."""

    __test__ = False

    id: str
    is_group: bool = False

    def as_pattern(self) -> str:
        """Filter value for ``swift test --filter``.

        Leaf ids are passed verbatim. Groups are anchored with the trailing
        separator so ``Target.Suite`` does not also select ``Target.SuiteTwo``.
        """
        return f"{self.id}/" if self.is_group else self.id


@dataclass(frozen=True, kw_only=True)
class TestRunArguments:
    """Candidate tests and per-framework filters for one run."""

    __test__ = False

    test_items: Sequence[TestNode]
    xctest_filters: Sequence[TestFilter] = field(default_factory=list)
    swift_testing_filters: Sequence[TestFilter] = field(default_factory=list)

    @property
    def has_xctests(self) -> bool:
        """Whether the run includes any XCTest."""
        return any(item.style == "XCTest" for item in self.test_items)

    @property
    def has_swift_testing_tests(self) -> bool:
        """Whether the run includes any swift-testing test."""
        return any(item.style == "swift-testing" for item in self.test_items)

    def items_for(self, style: str) -> list[TestNode]:
        """Candidates of one framework, in selection order."""
        return [item for item in self.test_items if item.style == style]

    @classmethod
    def from_request(cls, tree: TestTree, request: TestRunRequest) -> "TestRunArguments":
        """Expand ``request`` into candidate tests and filters.

        Groups directly below a target are selected whole unless one of their
        descendants is excluded, in which case they are expanded into their
        children. Filters are only produced when the request is filtered;
        otherwise the driver runs everything.

        Args:
            tree: Tree the requested nodes belong to
            request: Include and exclude selection

        Returns:
            Arguments with candidates in selection order

        """
        excluded = {node.key for node in request.exclude}
        excluded_ancestors = {
            ancestor.key for node in request.exclude for ancestor in tree.ancestors(node)
        }
        queue = deque(request.include or tree.roots)
        test_items: list[TestNode] = []
        filters: list[tuple[TestNode, TestFilter]] = []
        group_members: deque[TestNode] = deque()

        while queue:
            node = queue.popleft()
            if node.key in excluded or node.is_parameterized_result:
                continue

            parent = tree.parent(node)
            if (
                parent is not None
                and tree.parent(parent) is None
                and node.style != "target"
                and node.key not in excluded_ancestors
            ):
                test_items.append(node)
                filters.append((node, TestFilter(id=node.id, is_group=_has_tests(tree, node))))
                group_members.extend(tree.children(node))
                continue

            children = tree.children(node)
            if children and not _only_parameterized_results(children):
                queue.extend(children)
                continue

            test_items.append(node)
            filters.append((node, TestFilter(id=node.id)))

        # Tests inside whole groups are still needed to attribute output.
        while group_members:
            node = group_members.popleft()
            if node.key in excluded or node.is_parameterized_result:
                continue
            test_items.append(node)
            group_members.extend(tree.children(node))

        if not request.is_filtered:
            filters = []

        return cls(
            test_items=test_items,
            xctest_filters=[f for node, f in filters if node.style == "XCTest"],
            swift_testing_filters=[
                f for node, f in filters if node.style == "swift-testing"
            ],
        )


def _has_tests(tree: TestTree, node: TestNode) -> bool:
    return any(not child.is_parameterized_result for child in tree.children(node))


def _only_parameterized_results(children: Sequence[TestNode]) -> bool:
    return all(child.is_parameterized_result for child in children)
