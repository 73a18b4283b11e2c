"""Abstract base class for run history storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod

from runhistory.models import RunRecord, With
from runhistory.utils.result import Result, StorageError


def chronological(runs: list[RunRecord]) -> list[RunRecord]:
    """Order runs oldest first; insertion order breaks timestamp ties."""
    return sorted(
        runs,
        key=lambda run: (run.execution_date, run.id if run.id is not None else 0),
    )


class RunStore(ABC):
    """
    Append-only storage for run records.

    Implementations must make ``insert`` atomic for a single record, assign
    strictly increasing ids in insertion order, and return query results
    oldest first.
    """

    @abstractmethod
    def initialize(self) -> Result[None, StorageError]:
        """Prepare the store for use. Safe to call more than once."""

    @abstractmethod
    def insert(self, record: RunRecord) -> Result[int, StorageError]:
        """Append one run record and return its id."""

    @abstractmethod
    def query(self, run_filter: With) -> Result[list[RunRecord], StorageError]:
        """Return the records matching ``run_filter``, oldest first."""

    def close(self) -> None:
        """Release any resources held by the store."""
