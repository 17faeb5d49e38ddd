"""Run orchestrator - turns a selection of registered batches into one engine run."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from batchtest.context import TestContext, build_base_context
from batchtest.engine.assertions import disable_should, enable_should
from batchtest.engine.interface import BddInterface
from batchtest.engine.runnable import Suite
from batchtest.engine.runner import Runner
from batchtest.models.config import BatchTestConfig
from batchtest.models.test_result import RunResult, RunStats
from batchtest.registry.batch_registry import BatchRegistry
from batchtest.reporter.batch_reporter import BatchReporter
from batchtest.reporter.results_sink import ResultsSink
from batchtest.snapshots.store import SnapshotStore

logger = logging.getLogger(__name__)


class BatchNotFoundError(LookupError):
    pass


class RunPhase(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class RunHandle:
    """A started run. `wait()` resolves with the RunResult once the run has ended."""

    def __init__(self, runner: Runner, reporter: BatchReporter, batch_keys: list[str], update_snapshots: bool):
        self.runner = runner
        self.reporter = reporter
        self.batch_keys = batch_keys
        self.update_snapshots = update_snapshots
        self.result: RunResult | None = None
        self._task: asyncio.Task[RunResult] | None = None
        self._end_callbacks: list[Callable[[RunResult], Any]] = []

    @property
    def run_id(self) -> str:
        return self.reporter.run_id

    @property
    def stats(self) -> RunStats:
        return self.runner.stats

    @property
    def done(self) -> bool:
        return self.result is not None

    def abort(self) -> None:
        self.runner.abort()

    def on_end(self, callback: Callable[[RunResult], Any]) -> None:
        """Call `callback` with the RunResult when the run ends (immediately if it already has)."""
        if self.result is not None:
            callback(self.result)
        else:
            self._end_callbacks.append(callback)

    async def wait(self) -> RunResult:
        if self._task is None:
            raise RuntimeError("Run has not been started")
        return await self._task

    def _finish(self, result: RunResult) -> None:
        self.result = result
        for callback in self._end_callbacks:
            try:
                callback(result)
            except Exception:
                logger.exception("Run end callback failed for %s", self.run_id)
        self._end_callbacks.clear()


@dataclass
class OrchestratorState:
    """Mutable run state owned by one RunOrchestrator; IDLE at construction."""
    phase: RunPhase = RunPhase.IDLE
    active_run: Optional[RunHandle] = None
    last_outcome: Optional[RunPhase] = None  # COMPLETED or ABORTED after the latest run
    runs_started: int = 0


class RunOrchestrator:
    """Selects batches, builds the run context, drives the runner and persists snapshots.

    Runs are serialized: starting a run while another is active waits until
    the active run has ended.
    """

    def __init__(
        self,
        registry: BatchRegistry,
        store: SnapshotStore,
        sink: Optional[ResultsSink] = None,
        config: Optional[BatchTestConfig] = None,
    ):
        self.registry = registry
        self.store = store
        self.sink = sink
        self.config = config or BatchTestConfig()
        self.state = OrchestratorState()
        self._run_lock = asyncio.Lock()

        if self.store.resolve_snap_dir is None:
            self.store.resolve_snap_dir = registry.snapshot_dir
        if sink is not None:
            registry.subscribe(sink.clear)

    @property
    def is_running(self) -> bool:
        return self.state.active_run is not None

    async def run_all_batches(self, *, update_snapshots: Optional[bool] = None) -> RunHandle:
        """Run every registered batch in registration order."""
        return await self.run_selected(list(self.registry.keys()), update_snapshots=update_snapshots)

    async def run_selected(
        self,
        batch_keys: Iterable[str],
        *,
        update_snapshots: Optional[bool] = None,
    ) -> RunHandle:
        """Start a run of the given batches, in the given order.

        `update_snapshots` overrides the store's sticky `enable_updates` flag;
        when neither is set snapshots are compared, not recorded.
        """
        batch_keys = list(batch_keys)
        if self._run_lock.locked():
            logger.info("A run is in progress; the next run starts when it ends")
        await self._run_lock.acquire()
        try:
            return await self._start(batch_keys, update_snapshots)
        except BaseException:
            self._reset()
            raise

    def abort(self) -> None:
        """Stop the active run after its current test. Does nothing when idle."""
        handle = self.state.active_run
        if handle is None:
            logger.debug("Abort requested but no run is active")
            return
        handle.abort()

    async def _start(self, batch_keys: list[str], update_snapshots: Optional[bool]) -> RunHandle:
        self.state.phase = RunPhase.PREPARING
        self.state.runs_started += 1
        logger.info("Preparing run of %d batch(es): %s", len(batch_keys), ", ".join(batch_keys) or "-")

        # Fresh suite tree for every run
        root = Suite.create_root()
        if self.sink:
            self.sink.clear()

        runner = Runner(root, timeout=self.config.test_timeout_seconds)
        reporter = BatchReporter(runner, self.sink, batch_keys)
        interface = BddInterface(runner)
        base_context = build_base_context(interface, self._snapshot_matcher(runner))

        await self.store.load_batch_snaps(batch_keys)
        # Explicit flag > flag set before this run > off; either way this run consumes the flag
        if update_snapshots is None:
            update_snapshots = self.store.enable_updates
        self.store.enable_updates = None
        effective_update = bool(update_snapshots)
        self.store.update_mode = effective_update
        if effective_update:
            logger.info("Snapshots will be recorded and saved in this run")

        for key in batch_keys:
            context = base_context.for_batch(key, interface)
            root.add_suite(Suite(
                f"{key}_root",
                batch_key=key,
                body=functools.partial(self._register_batch, key, context),
                batch_root=True,
            ))

        enable_should()
        handle = RunHandle(runner, reporter, batch_keys, effective_update)
        self.state.active_run = handle
        self.state.phase = RunPhase.RUNNING
        handle._task = asyncio.create_task(self._drive(handle))
        return handle

    async def _register_batch(self, key: str, context: TestContext) -> None:
        batch = self.registry.get(key)
        if batch is None:
            raise BatchNotFoundError(f'No batch registered under "{key}"')
        logger.debug("Declaring suites for batch %s", key)
        result = batch.registration_callback(context)
        if inspect.isawaitable(result):
            await result

    async def _drive(self, handle: RunHandle) -> RunResult:
        try:
            stats = await handle.runner.run()
            self.state.phase = RunPhase.ABORTED if stats.aborted else RunPhase.COMPLETED
            self.state.last_outcome = self.state.phase
            self.state.active_run = None

            written: list = []
            if handle.update_snapshots:
                try:
                    written = await self.store.update_snapshots()
                except Exception:
                    logger.exception("Saving snapshots failed for run %s", handle.run_id)
            result = handle.reporter.build_run_result(stats)
            result.snapshots_written = [str(p) for p in written]
        finally:
            self._reset()
        handle._finish(result)
        return result

    def _reset(self) -> None:
        self.state.active_run = None
        self.store.update_mode = False
        disable_should()
        self.state.phase = RunPhase.IDLE
        if self._run_lock.locked():
            self._run_lock.release()

    def _snapshot_matcher(self, runner: Runner) -> Callable[[Any], None]:
        """Snapshot assertion bound to this run: identity comes from the running test."""
        counters: dict[str, int] = {}

        def match_snapshot(value: Any) -> None:
            test = runner.current_test
            if test is None:
                raise RuntimeError("Snapshots can only be matched from inside a test body")
            if test.batch_key is None:
                raise RuntimeError(f"Test {test.full_title()!r} does not belong to a batch")
            counters[test.id] = counters.get(test.id, 0) + 1
            title_path = test.title_path()
            self.store.compare(
                f"{test.full_title()} {counters[test.id]}",
                value,
                snap_dir=self.store.snap_dir_for(test.batch_key),
                group=title_path[0] if title_path else test.title,
            )

        return match_snapshot
