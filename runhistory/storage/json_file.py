"""JSON file run store.

The whole history lives in one document that is rewritten atomically on
every insert. Suited to small projects and CI caches; use SQLite for long
histories.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path

from runhistory.models import RunRecord, With
from runhistory.storage.base import RunStore, chronological
from runhistory.utils.atomic import AtomicWriteError, atomic_write_json
from runhistory.utils.logging import get_logger
from runhistory.utils.result import Err, Ok, Result, StorageError

logger = get_logger("storage.json")

FORMAT_VERSION = 1


class JsonRunStore(RunStore):
    """Stores run history in a single JSON document."""

    def __init__(self, path: str | Path) -> None:
        """
        Initialize the store. The file is not read until ``initialize``.

        Args:
            path: Path of the JSON history document
        """
        self.path = Path(path)
        self._runs: list[RunRecord] = []
        self._initialized = False
        self._lock = threading.Lock()

    def initialize(self) -> Result[None, StorageError]:
        with self._lock:
            if not self.path.exists():
                self._runs = []
                self._initialized = True
                logger.info("history_not_found", path=str(self.path))
                return Ok(None)

            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                runs = [RunRecord.from_dict(item) for item in data.get("runs", [])]
            except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
                logger.error("history_load_failed", path=str(self.path), error=str(e))
                return Err(StorageError(
                    operation="initialize",
                    message=f"Cannot read run history from {self.path}",
                    cause=e,
                ))

            self._runs = runs
            self._initialized = True

        logger.info("history_loaded", path=str(self.path), runs=len(runs))
        return Ok(None)

    def insert(self, record: RunRecord) -> Result[int, StorageError]:
        with self._lock:
            if not self._initialized:
                return Err(StorageError(operation="insert", message="Store is not initialized"))

            run_id = (self._runs[-1].id or 0) + 1 if self._runs else 1
            runs = self._runs + [record.with_id(run_id)]
            try:
                self._save(runs)
            except AtomicWriteError as e:
                return Err(StorageError(
                    operation="insert",
                    message=f"Cannot record run of '{record.title}'",
                    cause=e,
                ))
            self._runs = runs

        return Ok(run_id)

    def query(self, run_filter: With) -> Result[list[RunRecord], StorageError]:
        with self._lock:
            if not self._initialized:
                return Err(StorageError(operation="query", message="Store is not initialized"))
            snapshot = list(self._runs)
        return Ok(chronological([run for run in snapshot if run_filter.matches(run)]))

    def _save(self, runs: list[RunRecord]) -> None:
        data = {
            "version": FORMAT_VERSION,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "total_runs": len(runs),
            "runs": [run.to_dict() for run in runs],
        }
        atomic_write_json(self.path, data)
        logger.debug("history_saved", path=str(self.path), runs=len(runs))
