"""Batch-aware reporter - relays runner events to a results sink and records results."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from batchtest.engine.assertions import AssertionFailure
from batchtest.engine.runnable import Hook, Runnable, Suite, Test
from batchtest.engine.runner import RunEvent, Runner
from batchtest.models.test_result import FailureInfo, RunResult, RunStats, TestResult
from batchtest.snapshots.errors import SnapshotErrorKind
from batchtest.snapshots.serializer import serialize_value
from batchtest.utils import RunnableState, get_suite_state, get_test_state

from .results_sink import ResultsSink

logger = logging.getLogger(__name__)


def describe_failure(error: BaseException) -> FailureInfo:
    """Turn an exception raised by a test or hook into a tagged FailureInfo."""
    kind = getattr(error, "kind", None)
    match kind:
        case SnapshotErrorKind.MISSING:
            return FailureInfo(
                kind=SnapshotErrorKind.MISSING.value,
                message=error.message,
                snapshot_path=str(error.path),
                offer_snapshot_update=True,
            )
        case SnapshotErrorKind.MISMATCH:
            return FailureInfo(
                kind=SnapshotErrorKind.MISMATCH.value,
                message=error.message,
                actual=error.actual,
                expected=error.expected,
                snapshot_path=str(error.path),
                offer_snapshot_update=True,
            )

    if isinstance(error, AssertionFailure):
        info = FailureInfo(kind="assertion", message=error.message)
        if error.show_diff:
            info.actual = serialize_value(error.actual)
            info.expected = serialize_value(error.expected)
        return info
    if isinstance(error, AssertionError):
        return FailureInfo(kind="assertion", message=str(error) or "AssertionError")
    return FailureInfo(kind="error", message=f"{type(error).__name__}: {error}")


class BatchReporter:
    """Subscribes to a runner; forwards events to `sink` and builds a RunResult."""

    def __init__(
        self,
        runner: Runner,
        sink: Optional[ResultsSink] = None,
        batch_keys: Optional[list[str]] = None,
        run_id: Optional[str] = None,
    ):
        self.runner = runner
        self.sink = sink
        self.batch_keys = list(batch_keys or [])
        self.run_id = run_id or f"run_{uuid.uuid4().hex[:8]}"
        self.test_results: list[TestResult] = []
        self.offer_snapshot_update = False
        self._failures: dict[str, FailureInfo] = {}

        runner.on(RunEvent.RUN_BEGIN, self._on_run_begin)
        runner.on(RunEvent.RUN_END, self._on_run_end)
        runner.on(RunEvent.SUITE_BEGIN, self._on_suite_begin)
        runner.on(RunEvent.SUITE_END, self._on_suite_end)
        runner.on(RunEvent.TEST_BEGIN, self._on_test_begin)
        runner.on(RunEvent.TEST_FAIL, self._on_test_fail)
        runner.on(RunEvent.TEST_END, self._on_test_end)

    def _on_run_begin(self) -> None:
        logger.info("Run %s started (%d batches)", self.run_id, len(self.batch_keys))
        if self.sink:
            self.sink.handle_run_begin()

    def _on_run_end(self, stats: RunStats) -> None:
        logger.info(
            "Run %s finished: %d passed, %d failed, %d pending, %d errors (%.2fs)%s",
            self.run_id, stats.passed, stats.failed, stats.pending, stats.errors,
            stats.duration_seconds, " [aborted]" if stats.aborted else "",
        )
        if self.sink:
            self.sink.handle_run_end(stats)

    def _on_suite_begin(self, suite: Suite) -> None:
        if self.sink:
            self.sink.handle_suite_begin(suite, suite.batch_root)

    def _on_suite_end(self, suite: Suite) -> None:
        if self.sink:
            self.sink.handle_suite_end(suite, get_suite_state(suite))

    def _on_test_begin(self, test: Test) -> None:
        logger.debug("Test started: %s", test.full_title())
        if self.sink:
            self.sink.handle_test_begin(test)

    def _on_test_fail(self, runnable: Runnable, error: BaseException) -> None:
        failure = describe_failure(error)
        if failure.offer_snapshot_update:
            self.offer_snapshot_update = True
        logger.debug("Failed: %s: %s", runnable.full_title(), failure.message)

        if isinstance(runnable, Hook):
            # Hooks never reach TEST_END; record them here
            logger.warning("%s failed: %s", runnable.full_title(), failure.message)
            self.test_results.append(TestResult(
                test_id=runnable.id,
                test_name=runnable.title,
                full_title=runnable.full_title(),
                batch_key=runnable.batch_key,
                result="error",
                failure_reason=failure.message,
                failure=failure,
            ))
        else:
            self._failures[runnable.id] = failure

        if self.sink:
            self.sink.handle_test_fail(runnable, failure)

    def _on_test_end(self, test: Test) -> None:
        state = get_test_state(test)
        failure = self._failures.pop(test.id, None)
        result = {
            RunnableState.SUCCESS: "pass",
            RunnableState.FAILURE: "fail",
            RunnableState.PENDING: "pending",
        }.get(state, "error")
        self.test_results.append(TestResult(
            test_id=test.id,
            test_name=test.title,
            full_title=test.full_title(),
            batch_key=test.batch_key,
            result=result,
            duration_seconds=test.duration_seconds,
            failure_reason=failure.message if failure else None,
            failure=failure,
        ))
        if self.sink:
            self.sink.handle_test_end(test, state)

    def build_run_result(self, stats: RunStats) -> RunResult:
        return RunResult(
            run_id=self.run_id,
            batch_keys=self.batch_keys,
            started_at=stats.started_at,
            completed_at=stats.completed_at,
            total_tests=stats.total,
            passed=stats.passed,
            failed=stats.failed,
            pending=stats.pending,
            errors=stats.errors,
            aborted=stats.aborted,
            duration_seconds=stats.duration_seconds,
            test_results=list(self.test_results),
        )
