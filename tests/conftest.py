"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any

import pytest

from batchtest.engine.runnable import Runnable, Suite, Test
from batchtest.models.config import BatchTestConfig
from batchtest.models.test_result import FailureInfo, RunStats
from batchtest.orchestrator import RunOrchestrator
from batchtest.registry.batch_registry import BatchRegistry
from batchtest.snapshots.store import SnapshotStore
from batchtest.utils import RunnableState


class RecordingSink:
    """ResultsSink that records every call as (event, *details)."""

    def __init__(self):
        self.events: list[tuple[Any, ...]] = []
        self.failures: list[tuple[str, FailureInfo]] = []
        self.clears = 0

    def clear(self) -> None:
        self.clears += 1

    def handle_run_begin(self) -> None:
        self.events.append(("run_begin",))

    def handle_run_end(self, stats: RunStats) -> None:
        self.events.append(("run_end", stats.total))

    def handle_suite_begin(self, suite: Suite, is_batch_root: bool) -> None:
        self.events.append(("suite_begin", suite.title, is_batch_root))

    def handle_suite_end(self, suite: Suite, state: RunnableState) -> None:
        self.events.append(("suite_end", suite.title, state))

    def handle_test_begin(self, test: Test) -> None:
        self.events.append(("test_begin", test.full_title()))

    def handle_test_end(self, test: Test, state: RunnableState) -> None:
        self.events.append(("test_end", test.full_title(), state))

    def handle_test_fail(self, runnable: Runnable, failure: FailureInfo) -> None:
        self.failures.append((runnable.full_title(), failure))

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] == name]


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def batchtest_config(tmp_path: Path) -> BatchTestConfig:
    """Create a test configuration writing below tmp_path."""
    return BatchTestConfig(
        data_dir=str(tmp_path / "data"),
        report_output_dir=str(tmp_path / "reports"),
        test_timeout_seconds=2.0,
    )


# ============================================================================
# Registry / Store / Orchestrator Fixtures
# ============================================================================


@pytest.fixture
def registry() -> BatchRegistry:
    """Create an empty registry without namespace validation."""
    return BatchRegistry()


@pytest.fixture
def snap_base(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def store(snap_base: Path) -> SnapshotStore:
    """Create a snapshot store rooted in a temp directory."""
    return SnapshotStore(snap_base)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def orchestrator(
    registry: BatchRegistry,
    store: SnapshotStore,
    sink: RecordingSink,
    batchtest_config: BatchTestConfig,
) -> RunOrchestrator:
    """Create an orchestrator wired to the recording sink."""
    return RunOrchestrator(registry, store, sink, batchtest_config)
