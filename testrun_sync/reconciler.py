"""Reconcile freshly discovered test definitions into a persistent test tree."""

import logging
import re
from collections.abc import Mapping, Sequence

from testrun_sync.models.definition import (
    RUNNABLE_TAG,
    TEST_STYLES,
    TestDefinition,
)
from testrun_sync.models.tree import TestNode, TestTree

log = logging.getLogger(__name__)

# Trailing "/<file>:<line>:<column>" used to disambiguate overloaded tests.
FILE_SUFFIX_PATTERN = re.compile(r"/[^/]+:\d+:\d+$")

# Styles whose discovery may report nested tests without their enclosing suites.
SYNTHESIZED_STYLES = frozenset({"swift-testing"})


def reconcile(
    tree: TestTree,
    definitions: Sequence[TestDefinition],
    scope_file: str | None = None,
) -> None:
    """Merge incoming definitions into ``tree``.

    Nodes missing from ``definitions`` are removed, new ones are added and
    existing ones are updated in place so their identity survives
    rediscovery.

    Args:
        tree: Persistent tree to update
        definitions: Top level (target) definitions from discovery
        scope_file: When set, only nodes declared in this file are candidates
            for deletion, as when a single document was re-parsed

    """
    incoming = synthesize_missing_suites(definitions)
    lookup = _incoming_lookup(incoming, scope_file)

    if len(tree) > 0:
        for root in tree.roots:
            _remove_stale(tree, root, lookup, scope_file)

    for definition in incoming:
        upsert_definition(tree, definition)


def upsert_definition(
    tree: TestTree,
    definition: TestDefinition,
    parent: TestNode | None = None,
) -> TestNode:
    """Create or update the node for ``definition`` and its children.

    A node whose declaring file changed is replaced by a new node; its
    existing children are moved onto the replacement first so that nothing
    already discovered below it is lost.
    """
    existing = tree.get_child(parent, definition.id)
    if existing is None:
        node = _create_node(tree, definition)
        tree.add(parent, node)
    elif definition.location is not None and (
        existing.location is None or existing.location.file != definition.location.file
    ):
        node = _create_node(tree, definition)
        for child in tree.children(existing):
            tree.move(child, node)
        tree.replace(existing, node)
        log.debug("Replaced %s after its location changed", definition.id)
    else:
        node = existing

    node.label = definition.label
    node.style = definition.style
    node.disabled = definition.disabled
    node.sort_text = definition.sort_text
    if definition.location is not None:
        node.location = definition.location
    node.tags = _node_tags(definition, parent)

    for child in definition.children:
        upsert_definition(tree, child, node)

    return node


def synthesize_missing_suites(
    definitions: Sequence[TestDefinition],
) -> Sequence[TestDefinition]:
    """Insert the suites that discovery left out between targets and tests.

    Tests declared in extensions of nested suites can be reported directly
    under their target with an id such as ``Target.Outer/Inner/test()``.
    Such definitions are wrapped in location-less grouping definitions
    (``Target.Outer`` containing ``Target.Outer/Inner``) until their depth
    matches their position in the tree. Styles that never nest this way are
    left as they are.
    """
    return [_synthesize_children(definition) for definition in definitions]


def strip_file_suffix(id: str) -> str:
    """Remove a trailing ``/<file>:<line>:<column>`` disambiguator from ``id``."""
    return FILE_SUFFIX_PATTERN.sub("", id)


def dump_tree(tree: TestTree) -> Sequence[TestDefinition]:
    """Convert ``tree`` back into definitions that reconcile to the same tree.

    Parameterized results are dropped as they only exist for a single run.
    """
    return [_dump_node(tree, root) for root in tree.roots]


def _dump_node(tree: TestTree, node: TestNode) -> TestDefinition:
    return TestDefinition(
        id=node.id,
        label=node.label,
        style=node.style,
        location=node.location,
        tags=[tag for tag in node.tags if not _is_default_tag(tag)],
        disabled=node.disabled,
        sort_text=node.sort_text,
        children=[
            _dump_node(tree, child)
            for child in tree.children(node)
            if not child.is_parameterized_result
        ],
    )


def _create_node(tree: TestTree, definition: TestDefinition) -> TestNode:
    return tree.create(
        id=definition.id,
        label=definition.label,
        style=definition.style,
        location=definition.location,
        disabled=definition.disabled,
        sort_text=definition.sort_text,
    )


def _is_default_tag(tag: str) -> bool:
    return tag in TEST_STYLES or tag == RUNNABLE_TAG


def _node_tags(definition: TestDefinition, parent: TestNode | None) -> list[str]:
    tags = [definition.style, *definition.tags]
    if parent is not None:
        tags.extend(tag for tag in parent.tags if not _is_default_tag(tag))
    if not definition.disabled:
        tags.append(RUNNABLE_TAG)
    return list(dict.fromkeys(tags))


def _incoming_lookup(
    definitions: Sequence[TestDefinition], scope_file: str | None
) -> Mapping[str, TestDefinition]:
    lookup: dict[str, TestDefinition] = {}
    for definition in definitions:
        for item in definition.walk():
            if scope_file is None or (
                item.location is not None and item.location.file == scope_file
            ):
                lookup[item.id] = item
    return lookup


def _remove_stale(
    tree: TestTree,
    node: TestNode,
    lookup: Mapping[str, TestDefinition],
    scope_file: str | None,
) -> None:
    for child in tree.children(node):
        _remove_stale(tree, child, lookup, scope_file)

    if node.id in lookup:
        return
    if scope_file is not None and (
        node.location is None or node.location.file != scope_file
    ):
        return

    # Grouping nodes outlive a transient absence of their children.
    children = tree.children(node)
    if not children or all(
        child.location is None and not child.children for child in children
    ):
        log.debug("Removing %s, no longer discovered", node.id)
        tree.remove(node)


def _segments(id: str) -> list[str]:
    return strip_file_suffix(id).split("/")


def _expected_child_depth(definition: TestDefinition) -> int:
    if definition.style == "target":
        return 1
    return len(_segments(definition.id)) + 1


def _synthesize_children(definition: TestDefinition) -> TestDefinition:
    if not definition.children:
        return definition
    depth = _expected_child_depth(definition)
    children = [
        _wrap_in_parents(_synthesize_children(child), depth)
        for child in definition.children
    ]
    return definition.model_copy(update={"children": _merge_siblings(children)})


def _wrap_in_parents(definition: TestDefinition, depth: int) -> TestDefinition:
    if definition.style not in SYNTHESIZED_STYLES:
        return definition
    segments = _segments(definition.id)
    if len(segments) <= depth:
        return definition

    group_id = "/".join(segments[:-1])
    label = segments[-2] if len(segments) > 2 else segments[0].split(".", 1)[-1]
    group = TestDefinition(
        id=group_id,
        label=label,
        style=definition.style,
        children=[definition],
    )
    return _wrap_in_parents(group, depth)


def _merge_siblings(definitions: Sequence[TestDefinition]) -> list[TestDefinition]:
    """Combine siblings sharing an id, preferring the declared (located) one."""
    merged: dict[str, TestDefinition] = {}
    for definition in definitions:
        current = merged.get(definition.id)
        if current is None:
            merged[definition.id] = definition
            continue
        base, extra = (
            (current, definition)
            if current.location is not None or definition.location is None
            else (definition, current)
        )
        merged[definition.id] = base.model_copy(
            update={
                "children": _merge_siblings([*base.children, *extra.children]),
            }
        )
    return list(merged.values())
