"""Models for incoming test definitions."""

from collections.abc import Sequence
from typing import Literal

from pydantic import Field

from testrun_sync.models.base import Model

type TestStyle = Literal["target", "XCTest", "swift-testing"]

TEST_STYLES: tuple[str, ...] = ("target", "XCTest", "swift-testing")

RUNNABLE_TAG = "runnable"
PARAMETERIZED_TEST_RESULT_TAG = "parameterizedTestResult"


class Location(Model):
    """Source location of a test or diagnostic.

    Lines are 1-based as printed by the compiler and test frameworks.
    """

    file: str = Field(..., description="Path of the source file")
    line: int | None = Field(default=None, description="1-based line number")
    column: int | None = Field(default=None, description="1-based column number")


class TestDefinition(Model):
    """A declared test, suite or target as reported by discovery."""

    __test__ = False

    id: str = Field(..., description="Identifier, unique under its parent")
    label: str = Field(..., description="Display name")
    style: TestStyle = Field(..., description="Test framework or target marker")
    location: Location | None = Field(
        default=None, description="Declaration site; None for grouping nodes"
    )
    tags: Sequence[str] = Field(default_factory=list, description="Extra tags")
    disabled: bool = Field(default=False, description="Declared but not runnable")
    sort_text: str | None = Field(default=None, description="Display ordering key")
    children: Sequence["TestDefinition"] = Field(
        default_factory=list, description="Nested definitions"
    )

    def walk(self) -> Sequence["TestDefinition"]:
        """Return this definition and all its descendants, depth first."""
        definitions: list[TestDefinition] = [self]
        for child in self.children:
            definitions.extend(child.walk())
        return definitions


class TestDefinitionFile(Model):
    """Contents of a definitions file: the discovered test targets."""

    __test__ = False

    version: str = Field(default="1.0", description="File format version")
    tests: Sequence[TestDefinition] = Field(..., description="Target definitions")
