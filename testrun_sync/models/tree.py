"""Persistent tree of test identities.

The tree is an arena: it owns every ``TestNode`` and addresses them by an
integer key. A node keeps its parent key as a lookup-only back-link and the
ordered keys of its children. All traversal and mutation go through
``TestTree``, never through the nodes themselves.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from testrun_sync.models.definition import (
    PARAMETERIZED_TEST_RESULT_TAG,
    Location,
    TestStyle,
)


@dataclass(eq=False, kw_only=True)
class TestNode:
    """A test, suite or target held by a ``TestTree``.

    Nodes compare by identity: two nodes with the same id in different trees,
    or a node and its replacement, are different nodes.
    """

    __test__ = False

    key: int
    id: str
    label: str
    style: TestStyle
    location: Location | None = None
    tags: list[str] = field(default_factory=list)
    disabled: bool = False
    sort_text: str | None = None
    parent: int | None = None
    children: list[int] = field(default_factory=list)

    @property
    def is_parameterized_result(self) -> bool:
        """Whether this node was added at run time for a parameterized case."""
        return PARAMETERIZED_TEST_RESULT_TAG in self.tags


class TestTree:
    """Arena owning a forest of ``TestNode``s rooted at targets."""

    __test__ = False

    def __init__(self) -> None:
        self._nodes: dict[int, TestNode] = {}
        self._roots: list[int] = []
        self._next_key = 0

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        return isinstance(node, TestNode) and self._nodes.get(node.key) is node

    @property
    def roots(self) -> Sequence[TestNode]:
        """Top level nodes in display order."""
        return [self._nodes[key] for key in self._roots]

    def create(
        self,
        *,
        id: str,
        label: str,
        style: TestStyle,
        location: Location | None = None,
        disabled: bool = False,
        sort_text: str | None = None,
    ) -> TestNode:
        """Allocate a detached node owned by this tree."""
        node = TestNode(
            key=self._next_key,
            id=id,
            label=label,
            style=style,
            location=location,
            disabled=disabled,
            sort_text=sort_text,
        )
        self._next_key += 1
        self._nodes[node.key] = node
        return node

    def children(self, node: TestNode | None) -> Sequence[TestNode]:
        """Children of ``node``, or the roots when ``node`` is None."""
        keys = self._roots if node is None else node.children
        return [self._nodes[key] for key in keys]

    def parent(self, node: TestNode) -> TestNode | None:
        """Parent of ``node``, None for roots."""
        return None if node.parent is None else self._nodes[node.parent]

    def ancestors(self, node: TestNode) -> Iterator[TestNode]:
        """Yield the ancestors of ``node`` from nearest to root."""
        current = self.parent(node)
        while current is not None:
            yield current
            current = self.parent(current)

    def root_of(self, node: TestNode) -> TestNode:
        """Return the top level ancestor of ``node`` (itself for roots)."""
        root = node
        for ancestor in self.ancestors(node):
            root = ancestor
        return root

    def depth(self, node: TestNode) -> int:
        """Number of ancestors of ``node``."""
        return sum(1 for _ in self.ancestors(node))

    def get_child(self, parent: TestNode | None, id: str) -> TestNode | None:
        """Find the child of ``parent`` (or root) with the given id."""
        for child in self.children(parent):
            if child.id == id:
                return child
        return None

    def find(self, id: str) -> TestNode | None:
        """Find the first node with the given id anywhere in the tree."""
        for node in self.walk():
            if node.id == id:
                return node
        return None

    def walk(self, node: TestNode | None = None) -> Iterator[TestNode]:
        """Pre-order traversal of the subtree below ``node`` (or the forest).

        ``node`` itself is included when given.
        """
        if node is not None:
            yield node
        for child in self.children(node):
            yield from self.walk(child)

    def add(self, parent: TestNode | None, node: TestNode) -> None:
        """Append a detached node under ``parent`` (or as a root).

        Raises:
            ValueError: If ``parent`` already has a child with the same id

        """
        if self.get_child(parent, node.id) is not None:
            raise ValueError(f"Duplicate test id '{node.id}'")
        siblings = self._roots if parent is None else parent.children
        siblings.append(node.key)
        node.parent = None if parent is None else parent.key

    def replace(self, old: TestNode, new: TestNode) -> None:
        """Put detached ``new`` at the position of ``old`` and drop ``old``.

        The children of ``old`` are not migrated; callers move the ones they
        want to keep before replacing.
        """
        siblings = self._roots if old.parent is None else self._nodes[old.parent].children
        siblings[siblings.index(old.key)] = new.key
        new.parent = old.parent
        old.parent = None
        self._release(old)

    def move(self, node: TestNode, new_parent: TestNode) -> None:
        """Detach ``node`` from its parent and append it under ``new_parent``."""
        self._detach(node)
        self.add(new_parent, node)

    def remove(self, node: TestNode) -> None:
        """Delete ``node`` and its whole subtree."""
        self._detach(node)
        self._release(node)

    def clear_children(self, node: TestNode) -> None:
        """Delete every child subtree of ``node``."""
        for child in self.children(node):
            self.remove(child)

    def _detach(self, node: TestNode) -> None:
        siblings = self._roots if node.parent is None else self._nodes[node.parent].children
        siblings.remove(node.key)
        node.parent = None

    def _release(self, node: TestNode) -> None:
        for child in self.children(node):
            self._release(child)
        node.children = []
        del self._nodes[node.key]
