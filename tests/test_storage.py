"""Tests for the run history storage backends."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from runhistory.config import StorageConfig
from runhistory.models import RunRecord, Tag, TestResult, With
from runhistory.storage import (
    InMemoryRunStore,
    JsonRunStore,
    RunStore,
    SqliteRunStore,
    chronological,
    create_store,
)

from tests.conftest import JANUARY_1ST_2012


def run_of(title: str, result: TestResult = TestResult.SUCCESS, minutes: int = 0, **kwargs) -> RunRecord:
    return RunRecord(
        title=title,
        result=result,
        execution_date=JANUARY_1ST_2012 + timedelta(minutes=minutes),
        **kwargs,
    )


BOAT_TAGS = frozenset({Tag("Online sales", "feature"), Tag("Boat sales", "story")})
CAR_TAGS = frozenset({Tag("Online sales", "feature"), Tag("Car sales", "story")})


@pytest.fixture
def filled_store(store: RunStore) -> RunStore:
    for record in [
        run_of("Boat sales test", TestResult.FAILURE, minutes=1, duration=120, tags=BOAT_TAGS),
        run_of("Car sales test", TestResult.SUCCESS, minutes=2, tags=CAR_TAGS, project_key="GIZMOS"),
        run_of("Boat sales test", TestResult.SUCCESS, minutes=3, tags=BOAT_TAGS, project_key="GIZMOS"),
        run_of("Untagged test", TestResult.PENDING, minutes=4),
    ]:
        assert store.insert(record).is_ok()
    return store


class TestEveryBackend:
    def test_insert_assigns_increasing_ids(self, store: RunStore) -> None:
        first = store.insert(run_of("Boat sales test")).unwrap()
        second = store.insert(run_of("Boat sales test")).unwrap()

        assert second > first

    def test_query_returns_stored_fields(self, store: RunStore) -> None:
        run_id = store.insert(
            run_of("Boat sales test", TestResult.FAILURE, duration=500, project_key="GIZMOS", tags=BOAT_TAGS)
        ).unwrap()

        [run] = store.query(With.title("Boat sales test")).unwrap()

        assert run.id == run_id
        assert run.result is TestResult.FAILURE
        assert run.execution_date == JANUARY_1ST_2012
        assert run.duration == 500
        assert run.project_key == "GIZMOS"
        assert run.tags == BOAT_TAGS

    def test_query_by_title(self, filled_store: RunStore) -> None:
        runs = filled_store.query(With.title("Boat sales test")).unwrap()

        assert [run.result for run in runs] == [TestResult.FAILURE, TestResult.SUCCESS]

    def test_query_by_tag_name(self, filled_store: RunStore) -> None:
        assert len(filled_store.query(With.tag("Online sales")).unwrap()) == 3
        assert len(filled_store.query(With.tag("Car sales")).unwrap()) == 1
        assert filled_store.query(With.tag("House sales")).unwrap() == []

    def test_query_by_tag_type(self, filled_store: RunStore) -> None:
        assert len(filled_store.query(With.tag_type("story")).unwrap()) == 3
        assert filled_store.query(With.tag_type("epic")).unwrap() == []

    def test_query_by_project(self, filled_store: RunStore) -> None:
        runs = filled_store.query(With.project("GIZMOS")).unwrap()

        assert [run.title for run in runs] == ["Car sales test", "Boat sales test"]

    def test_query_scoped_to_a_project(self, filled_store: RunStore) -> None:
        runs = filled_store.query(With.tag("Boat sales").in_project("GIZMOS")).unwrap()

        assert len(runs) == 1
        assert runs[0].result is TestResult.SUCCESS

    def test_query_everything(self, filled_store: RunStore) -> None:
        runs = filled_store.query(With.all()).unwrap()

        assert len(runs) == 4
        assert runs == chronological(runs)

    def test_results_are_oldest_first_regardless_of_insert_order(self, store: RunStore) -> None:
        store.insert(run_of("Boat sales test", TestResult.SUCCESS, minutes=10))
        store.insert(run_of("Boat sales test", TestResult.FAILURE, minutes=5))

        runs = store.query(With.title("Boat sales test")).unwrap()

        assert [run.result for run in runs] == [TestResult.FAILURE, TestResult.SUCCESS]

    def test_untagged_runs_have_no_tags(self, filled_store: RunStore) -> None:
        [run] = filled_store.query(With.title("Untagged test")).unwrap()

        assert run.tags == frozenset()

    def test_initialize_twice_keeps_history(self, filled_store: RunStore) -> None:
        assert filled_store.initialize().is_ok()

        assert len(filled_store.query(With.all()).unwrap()) == 4

    def test_naive_and_aware_dates_share_one_history(self, store: RunStore) -> None:
        store.insert(RunRecord(
            title="Boat sales test",
            result=TestResult.FAILURE,
            execution_date=datetime(2012, 1, 2),
        ))
        store.insert(RunRecord(
            title="Boat sales test",
            result=TestResult.SUCCESS,
            execution_date=datetime(2012, 1, 1, tzinfo=timezone.utc),
        ))

        runs = store.query(With.title("Boat sales test")).unwrap()

        assert [run.result for run in runs] == [TestResult.SUCCESS, TestResult.FAILURE]
        assert all(run.execution_date.tzinfo is not None for run in runs)


class TestSqliteRunStore:
    def test_operations_before_initialize_fail(self, tmp_path: Path) -> None:
        store = SqliteRunStore(tmp_path / "history.db")

        insert = store.insert(run_of("Boat sales test"))
        query = store.query(With.all())

        assert insert.is_err()
        assert insert.unwrap_err().operation == "insert"
        assert query.is_err()

    def test_history_survives_reopening(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "history.db"
        store = SqliteRunStore(path)
        store.initialize()
        store.insert(run_of("Boat sales test", tags=BOAT_TAGS))
        store.close()

        reopened = SqliteRunStore(path)
        assert reopened.initialize().is_ok()
        [run] = reopened.query(With.tag("Boat sales")).unwrap()
        reopened.close()

        assert run.tags == BOAT_TAGS

    def test_in_memory_database(self) -> None:
        store = SqliteRunStore()
        store.initialize()

        store.insert(run_of("Boat sales test"))

        assert len(store.query(With.all()).unwrap()) == 1

    def test_shared_tags_are_stored_once(self, tmp_path: Path) -> None:
        store = SqliteRunStore(tmp_path / "history.db")
        store.initialize()
        store.insert(run_of("Boat sales test", tags=BOAT_TAGS))
        store.insert(run_of("Car sales test", tags=CAR_TAGS))

        count = store._conn.execute("SELECT COUNT(*) FROM test_run_tags").fetchone()[0]
        store.close()

        assert count == 3

    def test_naive_dates_are_read_back_as_utc(self) -> None:
        store = SqliteRunStore()
        store.initialize()
        store.insert(RunRecord(
            title="Boat sales test",
            result=TestResult.SUCCESS,
            execution_date=JANUARY_1ST_2012.replace(tzinfo=None),
        ))

        [run] = store.query(With.all()).unwrap()

        assert run.execution_date == JANUARY_1ST_2012


class TestJsonRunStore:
    def test_missing_file_is_an_empty_history(self, tmp_path: Path) -> None:
        store = JsonRunStore(tmp_path / "history.json")

        assert store.initialize().is_ok()
        assert store.query(With.all()).unwrap() == []

    def test_operations_before_initialize_fail(self, tmp_path: Path) -> None:
        store = JsonRunStore(tmp_path / "history.json")

        assert store.insert(run_of("Boat sales test")).is_err()
        assert store.query(With.all()).is_err()

    def test_history_survives_reopening(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        store = JsonRunStore(path)
        store.initialize()
        store.insert(run_of("Boat sales test", tags=BOAT_TAGS))
        store.insert(run_of("Car sales test", minutes=1, tags=CAR_TAGS))

        reopened = JsonRunStore(path)
        reopened.initialize()
        runs = reopened.query(With.all()).unwrap()

        assert [run.title for run in runs] == ["Boat sales test", "Car sales test"]
        assert reopened.insert(run_of("House sales test", minutes=2)).unwrap() == 3

    def test_naive_dates_are_saved_as_utc(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        store = JsonRunStore(path)
        store.initialize()
        store.insert(RunRecord(
            title="Boat sales test",
            result=TestResult.SUCCESS,
            execution_date=datetime(2012, 1, 1),
        ))
        store.insert(run_of("Boat sales test", TestResult.FAILURE, minutes=1))

        reopened = JsonRunStore(path)
        reopened.initialize()
        runs = reopened.query(With.title("Boat sales test")).unwrap()

        assert [run.execution_date for run in runs] == [
            JANUARY_1ST_2012,
            JANUARY_1ST_2012 + timedelta(minutes=1),
        ]
        assert json.loads(path.read_text())["runs"][0]["execution_date"].endswith("+00:00")

    def test_document_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        store = JsonRunStore(path)
        store.initialize()
        store.insert(run_of("Boat sales test"))

        data = json.loads(path.read_text())

        assert data["version"] == 1
        assert data["total_runs"] == 1
        assert data["runs"][0]["title"] == "Boat sales test"

    def test_corrupt_file_is_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        path.write_text("{not json")

        result = JsonRunStore(path).initialize()

        assert result.is_err()
        assert result.unwrap_err().operation == "initialize"


class TestCreateStore:
    @pytest.mark.parametrize(
        "backend,store_class",
        [
            ("memory", InMemoryRunStore),
            ("sqlite", SqliteRunStore),
            ("json", JsonRunStore),
        ],
    )
    def test_known_backends(self, tmp_path: Path, backend: str, store_class: type) -> None:
        result = create_store(StorageConfig(backend=backend, path=str(tmp_path / "history")))

        assert isinstance(result.unwrap(), store_class)

    def test_unknown_backend(self) -> None:
        result = create_store(StorageConfig(backend="mongo"))

        assert result.is_err()
        assert result.unwrap_err().field == "storage.backend"
