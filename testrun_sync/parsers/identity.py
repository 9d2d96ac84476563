"""Map test names reported by a test process back to candidate tests."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from testrun_sync.config import TargetSources
from testrun_sync.models.tree import TestNode, TestTree


class IdentityResolver(ABC):
    """Strategy for finding a reported test in the run's candidate list."""

    @abstractmethod
    def index_of(
        self,
        candidates: Sequence[TestNode],
        name: str,
        filename: str | None = None,
    ) -> int | None:
        """Return the index of the candidate reported as ``name``.

        Args:
            candidates: Tests of the run that have not finished yet
            name: Test name as printed by the test process
            filename: File named by an accompanying diagnostic, if any

        Returns:
            Index into ``candidates``, or None when nothing matches

        """


class ExactResolver(IdentityResolver):
    """Resolver for output that names the full test id (Darwin XCTest)."""

    def index_of(
        self,
        candidates: Sequence[TestNode],
        name: str,
        filename: str | None = None,
    ) -> int | None:
        for index, node in enumerate(candidates):
            if node.id == name:
                return index
        return None


class HeuristicResolver(IdentityResolver):
    """Resolver for output that leaves out the test target.

    Non-Darwin XCTest prints ``Class.method`` only. When a diagnostic names
    the failing file, a test whose target contains that file is preferred;
    otherwise the first test whose id ends with the name wins. The file may
    belong to a different target than the test, so this remains a best guess.
    """

    def __init__(
        self,
        tree: TestTree,
        package_path: Path,
        targets: Sequence[TargetSources] = (),
    ) -> None:
        self.tree = tree
        self.package_path = package_path
        self.targets = {target.name: target for target in targets}

    def index_of(
        self,
        candidates: Sequence[TestNode],
        name: str,
        filename: str | None = None,
    ) -> int | None:
        if filename:
            for index, node in enumerate(candidates):
                if node.id.endswith(name) and self._target_contains(node, filename):
                    return index

        for index, node in enumerate(candidates):
            if node.id.endswith(name):
                return index
        return None

    def _target_contains(self, node: TestNode, filename: str) -> bool:
        root = self.tree.root_of(node)
        if root is node or (target := self.targets.get(root.label)) is None:
            return False

        file_path = Path(filename)
        if not file_path.is_absolute():
            file_path = self.package_path / file_path
        try:
            relative = file_path.relative_to(self.package_path / target.path)
        except ValueError:
            return False

        return not target.sources or relative.as_posix() in target.sources
