"""Records of the swift-testing JSON event stream (version 0)."""

from collections.abc import Sequence
from typing import Annotated, Literal

from pydantic import Field, TypeAdapter

from testrun_sync.models.base import Model
from testrun_sync.models.definition import Location


class SourceLocation(Model):
    """Source location as written by swift-testing."""

    file_path: str = Field(..., alias="_filePath")
    line: int
    column: int | None = None

    def to_location(self) -> Location:
        """Convert to a ``Location``."""
        return Location(file=self.file_path, line=self.line, column=self.column)


class TestCase(Model):
    """One argument combination of a parameterized test."""

    __test__ = False

    id: str
    display_name: str = Field(..., alias="displayName")


class EventMessage(Model):
    """A line of human readable text attached to an event."""

    symbol: str = "default"
    text: str


class Instant(Model):
    """Time of an event, in seconds."""

    absolute: float
    since1970: float | None = None


class Issue(Model):
    """Problem reported by a test."""

    is_known: bool = Field(default=False, alias="isKnown")
    severity: str | None = None
    source_location: SourceLocation | None = Field(default=None, alias="sourceLocation")


class _Event(Model):
    instant: Instant | None = None
    messages: Sequence[EventMessage] = ()
    test_id: str | None = Field(default=None, alias="testID")
    test_case: TestCase | None = Field(default=None, alias="_testCase")


class RunStarted(_Event):
    kind: Literal["runStarted"]


class RunEnded(_Event):
    kind: Literal["runEnded"]


class TestStarted(_Event):
    __test__ = False

    kind: Literal["testStarted"]


class TestEnded(_Event):
    __test__ = False

    kind: Literal["testEnded"]


class TestCaseStarted(_Event):
    __test__ = False

    kind: Literal["testCaseStarted"]


class TestCaseEnded(_Event):
    __test__ = False

    kind: Literal["testCaseEnded"]


class TestSkipped(_Event):
    __test__ = False

    kind: Literal["testSkipped"]


class IssueRecorded(_Event):
    kind: Literal["issueRecorded"]
    issue: Issue = Field(default_factory=Issue)


EventPayload = Annotated[
    RunStarted
    | RunEnded
    | TestStarted
    | TestEnded
    | TestCaseStarted
    | TestCaseEnded
    | TestSkipped
    | IssueRecorded,
    Field(discriminator="kind"),
]


class TestDeclaration(Model):
    """A test function or suite known to the run."""

    __test__ = False

    kind: Literal["function", "suite"]
    id: str
    name: str | None = None
    is_parameterized: bool = Field(default=False, alias="isParameterized")
    test_cases: Sequence[TestCase] | None = Field(default=None, alias="_testCases")
    source_location: SourceLocation | None = Field(default=None, alias="sourceLocation")


class MetadataRecord(Model):
    kind: Literal["metadata"]
    version: int = 0
    payload: dict[str, object] = Field(default_factory=dict)


class TestRecord(Model):
    __test__ = False

    kind: Literal["test"]
    version: int = 0
    payload: TestDeclaration


class EventRecord(Model):
    kind: Literal["event"]
    version: int = 0
    payload: EventPayload


StreamRecord = Annotated[
    MetadataRecord | TestRecord | EventRecord, Field(discriminator="kind")
]

stream_record_adapter = TypeAdapter(StreamRecord)
