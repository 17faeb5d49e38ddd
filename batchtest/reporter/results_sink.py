"""Interface of the results surface that consumes run lifecycle events."""

from __future__ import annotations

from typing import Protocol

from batchtest.engine.runnable import Runnable, Suite, Test
from batchtest.models.test_result import FailureInfo, RunStats
from batchtest.utils import RunnableState


class ResultsSink(Protocol):
    def clear(self) -> None:
        """Forget displayed results; called when a run is prepared or batches change."""
        ...

    def handle_run_begin(self) -> None: ...

    def handle_run_end(self, stats: RunStats) -> None: ...

    def handle_suite_begin(self, suite: Suite, is_batch_root: bool) -> None:
        """Batch-root suites are synthetic wrappers and usually not displayed."""
        ...

    def handle_suite_end(self, suite: Suite, state: RunnableState) -> None: ...

    def handle_test_begin(self, test: Test) -> None: ...

    def handle_test_end(self, test: Test, state: RunnableState) -> None: ...

    def handle_test_fail(self, runnable: Runnable, failure: FailureInfo) -> None:
        """`runnable` is a Test, or a Hook when a hook or a batch's registration failed."""
        ...
