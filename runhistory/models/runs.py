"""Data models for recorded test runs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from runhistory.utils.clock import as_utc

# Project used when no project key is configured
DEFAULT_PROJECT_KEY = "default"

DEFAULT_TAG_TYPE = "feature"


class TestResult(Enum):
    """Outcome of a single test execution."""

    __test__ = False

    SUCCESS = "success"
    FAILURE = "failure"  # An assertion failed
    ERROR = "error"  # The test blew up before reaching a verdict
    COMPROMISED = "compromised"  # Environment problem, result not trustworthy
    PENDING = "pending"  # Not implemented yet
    SKIPPED = "skipped"
    IGNORED = "ignored"

    @property
    def is_passing(self) -> bool:
        return self is TestResult.SUCCESS

    @property
    def is_failing(self) -> bool:
        return self in _FAILING_RESULTS


_FAILING_RESULTS = frozenset(
    {TestResult.FAILURE, TestResult.ERROR, TestResult.COMPROMISED}
)


@dataclass(frozen=True, order=True)
class Tag:
    """
    A (name, type) label used to group tests.

    Attributes:
        name: Label, e.g. "Boat sales"
        type: Open vocabulary such as "feature" or "story"
    """

    name: str
    type: str = DEFAULT_TAG_TYPE

    @classmethod
    def parse(cls, text: str) -> "Tag":
        """Parse "name:type" (type optional)."""
        name, sep, type_ = text.rpartition(":")
        if not sep:
            return cls(text.strip())
        return cls(name.strip(), type_.strip() or DEFAULT_TAG_TYPE)

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict) -> "Tag":
        return cls(data["name"], data.get("type", DEFAULT_TAG_TYPE))

    def __str__(self) -> str:
        return f"{self.name} ({self.type})"


@dataclass(frozen=True)
class RunRecord:
    """
    One persisted fact per completed test execution.

    Attributes:
        title: Display name of the test, stable across runs
        result: Outcome of the execution
        execution_date: When the run was recorded (not when it executed), in UTC
        duration: Elapsed milliseconds
        project_key: Project the run belongs to
        tags: Tags resolved for the test when the run was recorded
        id: Store-assigned id, None until the record is inserted
    """

    title: str
    result: TestResult
    execution_date: datetime
    duration: int = 0
    project_key: str = DEFAULT_PROJECT_KEY
    tags: frozenset[Tag] = field(default_factory=frozenset)
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("A run record needs a title")
        if self.duration < 0:
            raise ValueError(f"Duration must be non-negative, got {self.duration}")
        if not isinstance(self.tags, frozenset):
            object.__setattr__(self, "tags", frozenset(self.tags))
        object.__setattr__(self, "execution_date", as_utc(self.execution_date))

    @property
    def is_passing(self) -> bool:
        return self.result.is_passing

    @property
    def is_failing(self) -> bool:
        return self.result.is_failing

    def with_id(self, run_id: int) -> "RunRecord":
        """Return a copy of this record carrying the store-assigned id."""
        return replace(self, id=run_id)

    def has_tag(self, name: str) -> bool:
        return any(tag.name == name for tag in self.tags)

    def has_tag_type(self, type_: str) -> bool:
        return any(tag.type == type_ for tag in self.tags)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "result": self.result.value,
            "execution_date": self.execution_date.isoformat(),
            "duration": self.duration,
            "project_key": self.project_key,
            "tags": [tag.to_dict() for tag in sorted(self.tags)],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RunRecord":
        """Create from dictionary."""
        return cls(
            id=data.get("id"),
            title=data["title"],
            result=TestResult(data["result"]),
            execution_date=datetime.fromisoformat(data["execution_date"]),
            duration=data.get("duration", 0),
            project_key=data.get("project_key", DEFAULT_PROJECT_KEY),
            tags=frozenset(Tag.from_dict(t) for t in data.get("tags", [])),
        )


def humanize(name: str) -> str:
    """Turn a method name into a readable title.

    "boat_sales_test" and "boatSalesTest" both become "Boat sales test".
    """
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).replace("_", " ").split()
    if not words:
        return name
    text = " ".join(word.lower() for word in words)
    return text[0].upper() + text[1:]


@dataclass(frozen=True)
class TestOutcome:
    """
    A completed test, as reported by the test runner.

    Attributes:
        title: Display name of the test
        result: Outcome of the execution
        method_name: Name of the test method or function
        test_case: Class (or module-level function) the test belongs to
        duration: Elapsed milliseconds
        failure_cause: Exception that failed the test, if any
        story_title: Title of the story the test belongs to, if any
    """

    __test__ = False

    title: str
    result: TestResult
    method_name: str = ""
    test_case: Any = None
    duration: int = 0
    failure_cause: Optional[BaseException] = None
    story_title: Optional[str] = None

    @classmethod
    def for_test(
        cls,
        method_name: str,
        test_case: Any = None,
        result: TestResult = TestResult.SUCCESS,
        duration: int = 0,
        story_title: Optional[str] = None,
    ) -> "TestOutcome":
        """Build an outcome titled after its method name."""
        return cls(
            title=humanize(method_name),
            result=result,
            method_name=method_name,
            test_case=test_case,
            duration=duration,
            story_title=story_title,
        )

    def with_result(self, result: TestResult) -> "TestOutcome":
        return replace(self, result=result)

    def with_failure(self, cause: BaseException) -> "TestOutcome":
        """Mark the outcome as failed by ``cause``.

        Assertion errors are failures; anything else is an error.
        """
        result = TestResult.FAILURE if isinstance(cause, AssertionError) else TestResult.ERROR
        return replace(self, result=result, failure_cause=cause)

    @property
    def identity(self) -> str:
        """Qualified name used to look up declared tags."""
        owner = self.test_case.__name__ if isinstance(self.test_case, type) else None
        if owner and self.method_name:
            return f"{owner}.{self.method_name}"
        return owner or self.method_name or self.title
