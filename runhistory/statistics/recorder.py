"""Records finished tests as run history.

The recorder listens to test lifecycle notifications and appends one run
record per finished test while recording is enabled. It never reads the
history back.
"""

from __future__ import annotations

from typing import Any, Optional

from runhistory.config.settings import HistoryConfig
from runhistory.models import DEFAULT_PROJECT_KEY, RunRecord, Tag, TestOutcome
from runhistory.statistics.tags import DecoratedTagResolver, TagResolver
from runhistory.storage.base import RunStore
from runhistory.utils.clock import SystemClock
from runhistory.utils.logging import clear_suite_context, get_logger, set_suite_context
from runhistory.utils.result import Ok, Result, StorageError

logger = get_logger("statistics.recorder")


def suite_name(suite: Any) -> str:
    """Readable name for a suite identity (class, module or string)."""
    if suite is None:
        return ""
    if isinstance(suite, str):
        return suite
    return getattr(suite, "__qualname__", None) or getattr(suite, "__name__", None) or str(suite)


class StatisticsRecorder:
    """
    Turns test lifecycle notifications into persisted run records.

    Recording is switched on and off through ``config.recording_enabled``,
    which is read once per finished test.
    """

    def __init__(
        self,
        store: RunStore,
        config: HistoryConfig,
        tag_resolver: Optional[TagResolver] = None,
        clock: Any = None,
    ) -> None:
        """
        Initialize the recorder.

        Args:
            store: Where run records are appended
            config: Shared configuration holding the recording switch and project key
            tag_resolver: Resolves tags for each finished test
            clock: Stamps each record with its execution date
        """
        self.store = store
        self.config = config
        self.tag_resolver = tag_resolver or DecoratedTagResolver()
        self.clock = clock or SystemClock()

        self.current_suite: Optional[str] = None
        self.recorded_in_suite = 0
        self.skipped_in_suite = 0

    def test_suite_started(self, suite: Any) -> None:
        """Open a recording context for ``suite``. Nothing is persisted."""
        self.current_suite = suite_name(suite)
        self.recorded_in_suite = 0
        self.skipped_in_suite = 0
        set_suite_context(self.current_suite, project=self.config.project_key)
        logger.debug("suite_started")

    def test_finished(self, outcome: TestOutcome) -> Result[Optional[int], StorageError]:
        """
        Record one finished test.

        Returns:
            Ok(run_id) once recorded, Ok(None) when recording is disabled,
            or the store's Err when the run could not be persisted
        """
        if not self.config.recording_enabled:
            self.skipped_in_suite += 1
            logger.debug("recording_disabled", title=outcome.title)
            return Ok(None)

        record = RunRecord(
            title=outcome.title,
            result=outcome.result,
            execution_date=self.clock.now(),
            duration=max(int(outcome.duration), 0),
            project_key=self.config.project_key or DEFAULT_PROJECT_KEY,
            tags=frozenset(self._resolve_tags(outcome)),
        )

        result = self.store.insert(record)
        if result.is_err():
            logger.error(
                "test_run_not_recorded",
                title=record.title,
                error=str(result.unwrap_err()),
            )
            return result

        self.recorded_in_suite += 1
        logger.info(
            "test_run_recorded",
            run_id=result.unwrap(),
            title=record.title,
            result=record.result.value,
            tags=len(record.tags),
        )
        return result

    def test_suite_finished(self) -> None:
        """Close the recording context. Nothing more is persisted."""
        logger.info(
            "suite_finished",
            recorded=self.recorded_in_suite,
            skipped=self.skipped_in_suite,
        )
        self.current_suite = None
        clear_suite_context()

    def _resolve_tags(self, outcome: TestOutcome) -> set[Tag]:
        try:
            return set(self.tag_resolver.tags_for(outcome))
        except Exception as e:
            # A run without tags is still worth recording
            logger.warning(
                "tag_resolution_failed",
                title=outcome.title,
                error=str(e),
            )
            return set()
