"""Read-only statistics over recorded run history."""

from __future__ import annotations

from typing import Iterable, Optional

from runhistory.models import RunRecord, Tag, TestStatistics, With
from runhistory.storage.base import RunStore, chronological
from runhistory.utils.logging import get_logger
from runhistory.utils.result import InvalidFilterError, StorageFailure

logger = get_logger("statistics.engine")


def latest_runs(runs: Iterable[RunRecord]) -> list[RunRecord]:
    """The most recently recorded run of each distinct title."""
    latest: dict[str, RunRecord] = {}
    for run in chronological(list(runs)):
        latest[run.title] = run
    return list(latest.values())


def latest_tags(runs: Iterable[RunRecord]) -> set[Tag]:
    """Union of the tags carried by the latest run of each title.

    Older runs are ignored: a test's tags may change between revisions and
    only its latest label set counts.
    """
    tags: set[Tag] = set()
    for run in latest_runs(runs):
        tags.update(run.tags)
    return tags


class StatisticsEngine:
    """
    Answers aggregate questions about recorded runs.

    Every operation is a pure read of the store as of the call.
    """

    def __init__(self, store: RunStore, project_key: Optional[str] = None) -> None:
        """
        Initialize the engine.

        Args:
            store: Run history to read
            project_key: Restrict every query to this project (None for all)
        """
        self.store = store
        self.project_key = project_key

    def for_project(self, project_key: str) -> "StatisticsEngine":
        """An engine whose queries only see runs of ``project_key``."""
        return StatisticsEngine(self.store, project_key=project_key)

    def statistics_for_tests(self, run_filter: With) -> TestStatistics:
        """
        Compute statistics over the runs matching ``run_filter``.

        Returns zero-valued statistics when nothing matches.

        Raises:
            InvalidFilterError: If the filter names no criterion or several
            StorageFailure: If the store cannot be read
        """
        runs = self._select(run_filter)
        if not runs:
            logger.debug("statistics_computed", filter=run_filter.describe(), total=0)
            return TestStatistics.empty()

        statistics = TestStatistics.from_runs(runs, tags=latest_tags(runs))
        logger.debug(
            "statistics_computed",
            filter=run_filter.describe(),
            total=statistics.total_test_runs,
            passing=statistics.passing_test_runs,
            failing=statistics.failing_test_runs,
        )
        return statistics

    def test_runs_for_test(self, run_filter: With) -> list[RunRecord]:
        """Runs matching ``run_filter``, most recent last."""
        return self._select(run_filter)

    def get_all_test_histories(self) -> list[RunRecord]:
        """Every recorded run (of this engine's project, if it has one)."""
        return self._query(self._everything())

    def find_all_tags(self) -> list[Tag]:
        """Distinct tags carried by the latest run of each test."""
        return sorted(latest_tags(self.get_all_test_histories()))

    def find_all_tag_types(self) -> list[str]:
        """Distinct types of the tags returned by ``find_all_tags``."""
        return sorted({tag.type for tag in self.find_all_tags()})

    def _everything(self) -> With:
        if self.project_key is None:
            return With.all()
        return With.project(self.project_key)

    def _select(self, run_filter: With) -> list[RunRecord]:
        validation = run_filter.validate()
        if validation.is_err():
            raise InvalidFilterError(validation.unwrap_err())
        return self._query(run_filter.in_project(self.project_key))

    def _query(self, run_filter: With) -> list[RunRecord]:
        result = self.store.query(run_filter)
        if result.is_err():
            logger.error(
                "statistics_query_failed",
                filter=run_filter.describe(),
                error=str(result.unwrap_err()),
            )
            raise StorageFailure(result.unwrap_err())
        return chronological(result.unwrap())
