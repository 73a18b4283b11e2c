"""Aggregate statistics computed over a set of recorded runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from runhistory.models.runs import RunRecord, Tag, TestResult


def pass_rate(passing: int, total: int) -> float:
    """Ratio of passing to total runs; 0.0 when nothing ran."""
    if total <= 0:
        return 0.0
    return passing / total


@dataclass(frozen=True)
class PassRate:
    """Pass rates over a chronologically ordered sequence of results."""

    results: tuple[TestResult, ...] = ()

    def over_the_last(self, n: int) -> float:
        """
        Pass rate over the ``n`` most recently recorded runs.

        Uses every run when fewer than ``n`` exist.

        Raises:
            ValueError: If n is negative
        """
        if n < 0:
            raise ValueError(f"Window size must be non-negative, got {n}")
        if n == 0:
            return 0.0
        window = self.results[-n:]
        passing = sum(1 for result in window if result.is_passing)
        return pass_rate(passing, len(window))

    def overall(self) -> float:
        return self.over_the_last(len(self.results))


@dataclass(frozen=True)
class TestStatistics:
    """
    Statistics for the runs matched by one query.

    Attributes:
        total_test_runs: Number of matching runs
        passing_test_runs: Runs whose result is SUCCESS
        failing_test_runs: Runs whose result is a failure (PENDING excluded)
        overall_pass_rate: All-time passing/total ratio
        tags: Tags carried by the latest run of each matched test
        pass_rate: Windowed pass rates over the matched runs
    """

    __test__ = False

    total_test_runs: int = 0
    passing_test_runs: int = 0
    failing_test_runs: int = 0
    overall_pass_rate: float = 0.0
    tags: tuple[Tag, ...] = ()
    pass_rate: PassRate = field(default_factory=PassRate)

    @classmethod
    def empty(cls) -> "TestStatistics":
        """Zero-valued statistics for a query with no matching runs."""
        return cls()

    @classmethod
    def from_runs(
        cls,
        runs: Sequence[RunRecord],
        tags: Iterable[Tag] = (),
    ) -> "TestStatistics":
        """
        Calculate statistics from runs already in chronological order.

        Args:
            runs: Matching runs, oldest first
            tags: Tags to report alongside the counts
        """
        total = len(runs)
        passing = sum(1 for run in runs if run.is_passing)
        failing = sum(1 for run in runs if run.is_failing)

        return cls(
            total_test_runs=total,
            passing_test_runs=passing,
            failing_test_runs=failing,
            overall_pass_rate=pass_rate(passing, total),
            tags=tuple(sorted(set(tags))),
            pass_rate=PassRate(tuple(run.result for run in runs)),
        )

    def to_dict(self, last: int | None = None) -> dict:
        """Convert to dictionary for reporting."""
        data = {
            "total_test_runs": self.total_test_runs,
            "passing_test_runs": self.passing_test_runs,
            "failing_test_runs": self.failing_test_runs,
            "overall_pass_rate": round(self.overall_pass_rate, 4),
            "tags": [tag.to_dict() for tag in self.tags],
        }
        if last is not None:
            data["last"] = last
            data["pass_rate_over_last"] = round(self.pass_rate.over_the_last(last), 4)
        return data
