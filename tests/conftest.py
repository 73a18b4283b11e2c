"""Shared fixtures: sample tagged tests, clocks, stores and a seeded history."""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest

from runhistory.config import HistoryConfig
from runhistory.models import RunRecord, TestOutcome, TestResult, With
from runhistory.statistics import StatisticsEngine, StatisticsRecorder, with_tag
from runhistory.storage import InMemoryRunStore, JsonRunStore, RunStore, SqliteRunStore
from runhistory.utils.logging import configure_logging
from runhistory.utils.result import Err, Result, StorageError

JANUARY_1ST_2012 = datetime(2012, 1, 1, 0, 0, tzinfo=timezone.utc)


@with_tag("Online sales", type="feature")
class OnlineSalesTestCaseSample:
    @with_tag("Boat sales", type="story")
    def boat_sales_test(self) -> None: ...

    @with_tag("Car sales", type="story")
    def car_sales_test(self) -> None: ...

    @with_tag("House sales", type="story")
    def house_sales_test(self) -> None: ...

    @with_tag("Gizmo sales", type="story")
    def gizmo_sales_test(self) -> None: ...


class TickingClock:
    """A clock that moves one second forward every time it is read."""

    def __init__(self, start: datetime = JANUARY_1ST_2012) -> None:
        self.moment = start

    def now(self) -> datetime:
        current = self.moment
        self.moment = current + timedelta(seconds=1)
        return current


class FailingStore(RunStore):
    """A store whose every operation fails, as if the database were down."""

    def __init__(self) -> None:
        self.queries = 0

    def initialize(self) -> Result[None, StorageError]:
        return Err(StorageError(operation="initialize", message="database is down"))

    def insert(self, record: RunRecord) -> Result[int, StorageError]:
        return Err(StorageError(operation="insert", message="database is down"))

    def query(self, run_filter: With) -> Result[list[RunRecord], StorageError]:
        self.queries += 1
        return Err(StorageError(operation="query", message="database is down"))


def outcome_for(method_name: str, result: TestResult) -> TestOutcome:
    # Methods the sample class does not define carry only its class-level tag
    outcome = TestOutcome.for_test(method_name, OnlineSalesTestCaseSample, duration=500)
    if result is TestResult.FAILURE:
        return outcome.with_failure(AssertionError("A nasty bug"))
    return outcome.with_result(result)


def passing_test_for(method_name: str) -> TestOutcome:
    return outcome_for(method_name, TestResult.SUCCESS)


def failing_test_for(method_name: str) -> TestOutcome:
    return outcome_for(method_name, TestResult.FAILURE)


def pending_test_for(method_name: str) -> TestOutcome:
    return outcome_for(method_name, TestResult.PENDING)


def record_sample_history(recorder: StatisticsRecorder) -> None:
    """Record 30 runs across six tests, in eight rounds plus two extra ones."""
    recorder.test_suite_started(OnlineSalesTestCaseSample)

    for outcome in [
        pending_test_for("boat_sales_test"),
        failing_test_for("car_sales_test"),
        failing_test_for("house_sales_test"),

        failing_test_for("boat_sales_test"),
        failing_test_for("car_sales_test"),
        passing_test_for("house_sales_test"),

        passing_test_for("boat_sales_test"),
        failing_test_for("car_sales_test"),
        failing_test_for("house_sales_test"),

        passing_test_for("boat_sales_test"),
        failing_test_for("car_sales_test"),
        passing_test_for("house_sales_test"),

        passing_test_for("boat_sales_test"),
        passing_test_for("car_sales_test"),
        failing_test_for("house_sales_test"),

        passing_test_for("boat_sales_test"),
        passing_test_for("car_sales_test"),
        passing_test_for("house_sales_test"),

        passing_test_for("boat_sales_test"),
        failing_test_for("car_sales_test"),
        failing_test_for("house_sales_test"),
        passing_test_for("gizmo_sales_test"),

        passing_test_for("boat_sales_test"),
        passing_test_for("car_sales_test"),
        passing_test_for("house_sales_test"),
        failing_test_for("gizmo_sales_test"),

        passing_test_for("more_boat_sales_test"),
        passing_test_for("more_car_sales_test"),

        passing_test_for("more_boat_sales_test"),
        passing_test_for("more_car_sales_test"),
    ]:
        assert recorder.test_finished(outcome).is_ok()

    recorder.test_suite_finished()


@pytest.fixture(autouse=True)
def log_stream() -> Iterator[io.StringIO]:
    """Send structured logs to a buffer the test can inspect."""
    stream = io.StringIO()
    configure_logging(level="debug", format_type="json", stream=stream)
    yield stream
    configure_logging(level="warn", format_type="json", stream=io.StringIO())


@pytest.fixture
def config() -> HistoryConfig:
    """Configuration with recording switched on."""
    return HistoryConfig(recording_enabled=True)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture(params=["memory", "sqlite", "json"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[RunStore]:
    """An initialized store of each backend."""
    if request.param == "memory":
        run_store: RunStore = InMemoryRunStore()
    elif request.param == "sqlite":
        run_store = SqliteRunStore(tmp_path / "history.db")
    else:
        run_store = JsonRunStore(tmp_path / "history.json")

    assert run_store.initialize().is_ok()
    yield run_store
    run_store.close()


@pytest.fixture
def memory_store() -> InMemoryRunStore:
    run_store = InMemoryRunStore()
    run_store.initialize()
    return run_store


@pytest.fixture
def recorder(store: RunStore, config: HistoryConfig, clock: TickingClock) -> StatisticsRecorder:
    return StatisticsRecorder(store, config, clock=clock)


@pytest.fixture
def engine(store: RunStore) -> StatisticsEngine:
    return StatisticsEngine(store)


@pytest.fixture
def seeded_engine(recorder: StatisticsRecorder, engine: StatisticsEngine) -> StatisticsEngine:
    """An engine over the 30-run sample history, seeded explicitly per test."""
    record_sample_history(recorder)
    return engine
