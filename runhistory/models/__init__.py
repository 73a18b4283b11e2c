"""Data models for runhistory."""

from runhistory.models.runs import (
    DEFAULT_PROJECT_KEY,
    DEFAULT_TAG_TYPE,
    RunRecord,
    Tag,
    TestOutcome,
    TestResult,
    humanize,
)
from runhistory.models.filters import With
from runhistory.models.statistics import (
    PassRate,
    TestStatistics,
    pass_rate,
)

__all__ = [
    # Run models
    "DEFAULT_PROJECT_KEY",
    "DEFAULT_TAG_TYPE",
    "RunRecord",
    "Tag",
    "TestOutcome",
    "TestResult",
    "humanize",
    # Query filters
    "With",
    # Statistics models
    "PassRate",
    "TestStatistics",
    "pass_rate",
]
