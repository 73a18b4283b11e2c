"""Query filters for the statistics engine.

A query names exactly one primary criterion (title, tag or tag type), or
only a project. Any primary criterion can be scoped further to a project:

    With.tag("Boat sales").in_project("GIZMOS")
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from runhistory.models.runs import RunRecord
from runhistory.utils.result import Err, FilterError, Ok, Result


@dataclass(frozen=True)
class With:
    """Selects run records for a statistics query."""

    title_: Optional[str] = None
    tag_: Optional[str] = None
    tag_type_: Optional[str] = None
    project_key: Optional[str] = None
    everything: bool = False

    @classmethod
    def title(cls, title: str) -> "With":
        """Runs whose title equals ``title`` exactly."""
        return cls(title_=title)

    @classmethod
    def tag(cls, name: str) -> "With":
        """Runs carrying a tag named ``name``, whatever its type."""
        return cls(tag_=name)

    @classmethod
    def tag_type(cls, type_: str) -> "With":
        """Runs carrying any tag of type ``type_``."""
        return cls(tag_type_=type_)

    @classmethod
    def project(cls, key: str) -> "With":
        """Every run of one project."""
        return cls(project_key=key)

    @classmethod
    def all(cls) -> "With":
        """Every run, across all projects."""
        return cls(everything=True)

    def in_project(self, key: Optional[str]) -> "With":
        """Scope this filter to one project (no-op for ``None``)."""
        if key is None:
            return self
        return replace(self, project_key=key, everything=False)

    @property
    def criteria(self) -> dict[str, str]:
        """The primary criteria that are set, keyed by name."""
        named = {
            "title": self.title_,
            "tag": self.tag_,
            "tag_type": self.tag_type_,
        }
        return {name: value for name, value in named.items() if value is not None}

    def validate(self) -> Result[None, FilterError]:
        """
        Check that exactly one primary criterion is named.

        Returns:
            Result indicating success or why the filter is rejected
        """
        criteria = self.criteria
        if len(criteria) > 1:
            return Err(FilterError(
                message=f"Only one of title, tag or tag type may be given, got {sorted(criteria)}",
            ))
        if self.everything:
            if criteria or self.project_key is not None:
                return Err(FilterError(message="An unfiltered query cannot name criteria"))
            return Ok(None)
        if not criteria and self.project_key is None:
            return Err(FilterError(
                message="A title, tag, tag type or project must be given",
            ))
        return Ok(None)

    def matches(self, record: RunRecord) -> bool:
        """Evaluate this filter against a single run record."""
        if self.everything:
            return True
        if self.project_key is not None and record.project_key != self.project_key:
            return False
        if self.title_ is not None:
            return record.title == self.title_
        if self.tag_ is not None:
            return record.has_tag(self.tag_)
        if self.tag_type_ is not None:
            return record.has_tag_type(self.tag_type_)
        return True

    def describe(self) -> str:
        """Short description for logs."""
        if self.everything:
            return "all"
        parts = [f"{name}={value!r}" for name, value in self.criteria.items()]
        if self.project_key is not None:
            parts.append(f"project={self.project_key!r}")
        return ", ".join(parts)
