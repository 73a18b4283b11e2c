"""Recording of test runs and statistics over their history.

The recorder writes and the engine reads; neither depends on the other.
"""

from runhistory.models.filters import With
from runhistory.statistics.engine import StatisticsEngine, latest_runs, latest_tags
from runhistory.statistics.recorder import StatisticsRecorder
from runhistory.statistics.tags import (
    DecoratedTagResolver,
    NoTagResolver,
    StaticTagResolver,
    TagResolver,
    with_tag,
    with_tags,
)

__all__ = [
    "With",
    "StatisticsEngine",
    "StatisticsRecorder",
    "latest_runs",
    "latest_tags",
    "TagResolver",
    "DecoratedTagResolver",
    "StaticTagResolver",
    "NoTagResolver",
    "with_tag",
    "with_tags",
]
