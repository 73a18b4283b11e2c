"""SQLite-backed run store.

Runs and tags are kept in separate tables joined by a link table, so a tag
shared by many runs is stored once and a run can carry any number of tags.
"""

from __future__ import annotations

import sqlite3
import threading
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from runhistory.models import RunRecord, Tag, TestResult, With
from runhistory.storage.base import RunStore
from runhistory.utils.clock import as_utc
from runhistory.utils.logging import get_logger
from runhistory.utils.result import Err, Ok, Result, StorageError

logger = get_logger("storage.sqlite")

SCHEMA = """
CREATE TABLE IF NOT EXISTS test_runs (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    title          TEXT    NOT NULL,
    result         TEXT    NOT NULL,
    execution_date TEXT    NOT NULL,
    duration       INTEGER NOT NULL DEFAULT 0,
    project_key    TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_test_runs_title ON test_runs (title);
CREATE INDEX IF NOT EXISTS idx_test_runs_project ON test_runs (project_key);
CREATE INDEX IF NOT EXISTS idx_test_runs_order ON test_runs (execution_date, id);

CREATE TABLE IF NOT EXISTS test_run_tags (
    id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    UNIQUE (name, type)
);

CREATE TABLE IF NOT EXISTS test_run_tag_links (
    run_id INTEGER NOT NULL REFERENCES test_runs (id),
    tag_id INTEGER NOT NULL REFERENCES test_run_tags (id),
    PRIMARY KEY (run_id, tag_id)
);
"""


def _to_utc_text(moment: datetime) -> str:
    # Fixed-width UTC text so that string order matches chronological order
    return as_utc(moment).isoformat(timespec="microseconds")


class SqliteRunStore(RunStore):
    """Stores run history in a SQLite database file (or ``:memory:``)."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        """
        Initialize the store. No connection is opened until ``initialize``.

        Args:
            path: Database file path, or ":memory:"
        """
        self.path = str(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def initialize(self) -> Result[None, StorageError]:
        with self._lock:
            try:
                if self._conn is None:
                    if self.path != ":memory:":
                        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
                    self._conn = sqlite3.connect(self.path, check_same_thread=False)
                    self._conn.row_factory = sqlite3.Row
                self._conn.executescript(SCHEMA)
                self._conn.commit()
            except (sqlite3.Error, OSError) as e:
                logger.error("store_initialize_failed", backend="sqlite", path=self.path, error=str(e))
                return Err(StorageError(
                    operation="initialize",
                    message=f"Cannot open run history database {self.path}",
                    cause=e,
                ))

        logger.debug("store_initialized", backend="sqlite", path=self.path)
        return Ok(None)

    def insert(self, record: RunRecord) -> Result[int, StorageError]:
        with self._lock:
            if self._conn is None:
                return Err(StorageError(operation="insert", message="Store is not initialized"))
            try:
                with self._conn:
                    cur = self._conn.execute(
                        """
                        INSERT INTO test_runs
                          (title, result, execution_date, duration, project_key)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (
                            record.title,
                            record.result.value,
                            _to_utc_text(record.execution_date),
                            record.duration,
                            record.project_key,
                        ),
                    )
                    run_id = cur.lastrowid
                    for tag in record.tags:
                        self._conn.execute(
                            "INSERT OR IGNORE INTO test_run_tags (name, type) VALUES (?, ?)",
                            (tag.name, tag.type),
                        )
                        self._conn.execute(
                            """
                            INSERT OR IGNORE INTO test_run_tag_links (run_id, tag_id)
                            SELECT ?, id FROM test_run_tags WHERE name = ? AND type = ?
                            """,
                            (run_id, tag.name, tag.type),
                        )
            except sqlite3.Error as e:
                logger.error("storage_insert_failed", backend="sqlite", title=record.title, error=str(e))
                return Err(StorageError(
                    operation="insert",
                    message=f"Cannot record run of '{record.title}'",
                    cause=e,
                ))

        return Ok(run_id)

    def query(self, run_filter: With) -> Result[list[RunRecord], StorageError]:
        where, params = self._where_clause(run_filter)

        with self._lock:
            if self._conn is None:
                return Err(StorageError(operation="query", message="Store is not initialized"))
            try:
                rows = self._conn.execute(
                    f"""
                    SELECT r.id, r.title, r.result, r.execution_date, r.duration, r.project_key
                    FROM test_runs r
                    {where}
                    ORDER BY r.execution_date, r.id
                    """,
                    params,
                ).fetchall()
                tag_rows = self._conn.execute(
                    f"""
                    SELECT l.run_id, t.name, t.type
                    FROM test_run_tag_links l
                    JOIN test_run_tags t ON t.id = l.tag_id
                    WHERE l.run_id IN (SELECT r.id FROM test_runs r {where})
                    """,
                    params,
                ).fetchall()
            except sqlite3.Error as e:
                logger.error("storage_query_failed", backend="sqlite", filter=run_filter.describe(), error=str(e))
                return Err(StorageError(
                    operation="query",
                    message=f"Cannot read runs for {run_filter.describe()}",
                    cause=e,
                ))

        tags_by_run: dict[int, set[Tag]] = defaultdict(set)
        for row in tag_rows:
            tags_by_run[row["run_id"]].add(Tag(row["name"], row["type"]))

        return Ok([
            RunRecord(
                id=row["id"],
                title=row["title"],
                result=TestResult(row["result"]),
                execution_date=datetime.fromisoformat(row["execution_date"]),
                duration=row["duration"],
                project_key=row["project_key"],
                tags=frozenset(tags_by_run.get(row["id"], ())),
            )
            for row in rows
        ])

    @staticmethod
    def _where_clause(run_filter: With) -> tuple[str, list[Any]]:
        if run_filter.everything:
            return "", []

        clauses: list[str] = []
        params: list[Any] = []

        if run_filter.project_key is not None:
            clauses.append("r.project_key = ?")
            params.append(run_filter.project_key)
        if run_filter.title_ is not None:
            clauses.append("r.title = ?")
            params.append(run_filter.title_)
        if run_filter.tag_ is not None or run_filter.tag_type_ is not None:
            column = "name" if run_filter.tag_ is not None else "type"
            clauses.append(
                "EXISTS (SELECT 1 FROM test_run_tag_links fl"
                " JOIN test_run_tags ft ON ft.id = fl.tag_id"
                f" WHERE fl.run_id = r.id AND ft.{column} = ?)"
            )
            params.append(run_filter.tag_ if run_filter.tag_ is not None else run_filter.tag_type_)

        if not clauses:
            return "", []
        return "WHERE " + " AND ".join(clauses), params

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
