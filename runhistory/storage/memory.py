"""In-process run store."""

from __future__ import annotations

import threading

from runhistory.models import RunRecord, With
from runhistory.storage.base import RunStore, chronological
from runhistory.utils.logging import get_logger
from runhistory.utils.result import Ok, Result, StorageError

logger = get_logger("storage.memory")


class InMemoryRunStore(RunStore):
    """Keeps run records in a list for the life of the process."""

    def __init__(self) -> None:
        self._runs: list[RunRecord] = []
        self._lock = threading.Lock()

    def initialize(self) -> Result[None, StorageError]:
        logger.debug("store_initialized", backend="memory")
        return Ok(None)

    def insert(self, record: RunRecord) -> Result[int, StorageError]:
        with self._lock:
            run_id = len(self._runs) + 1
            self._runs.append(record.with_id(run_id))
        return Ok(run_id)

    def query(self, run_filter: With) -> Result[list[RunRecord], StorageError]:
        with self._lock:
            snapshot = list(self._runs)
        return Ok(chronological([run for run in snapshot if run_filter.matches(run)]))

    def __len__(self) -> int:
        return len(self._runs)
