"""Cooperative asyncio runner for a suite tree.

The runner walks the tree depth-first in declaration order, evaluating each
suite's declaration body when it is entered, running hooks around tests, and
emitting lifecycle events to its listeners. Aborting is only honoured at test
and suite boundaries, so a test body that has started always finishes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator

from batchtest.engine.runnable import Hook, RunnableFn, Suite, Test
from batchtest.models.test_result import RunStats

logger = logging.getLogger(__name__)


class RunEvent(str, Enum):
    RUN_BEGIN = "start"
    RUN_END = "end"
    SUITE_BEGIN = "suite"
    SUITE_END = "suite end"
    TEST_BEGIN = "test"
    TEST_END = "test end"
    TEST_PASS = "pass"
    TEST_FAIL = "fail"
    TEST_PENDING = "pending"


class Runner:
    """Executes one suite tree exactly once."""

    def __init__(self, root: Suite, timeout: float | None = None):
        self.root = root
        self.timeout = timeout
        self.stats = RunStats()
        self.current_test: Test | None = None
        self.started = False
        self.finished = False
        self._abort_requested = False
        self._declaring: list[Suite] = [root]
        self._listeners: dict[RunEvent, list[Callable[..., Any]]] = defaultdict(list)

    # --- listeners -------------------------------------------------------

    def on(self, event: RunEvent, listener: Callable[..., Any]) -> None:
        self._listeners[event].append(listener)

    def once(self, event: RunEvent, listener: Callable[..., Any]) -> None:
        def _once(*args: Any) -> None:
            self._listeners[event].remove(_once)
            listener(*args)

        self.on(event, _once)

    def _emit(self, event: RunEvent, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %r failed", event.value)

    # --- declaration support ---------------------------------------------

    @property
    def current_suite(self) -> Suite:
        """The suite that describe/it/hook declarations currently attach to."""
        return self._declaring[-1]

    @contextmanager
    def declaring(self, suite: Suite) -> Iterator[Suite]:
        self._declaring.append(suite)
        try:
            yield suite
        finally:
            self._declaring.pop()

    # --- control ---------------------------------------------------------

    def abort(self) -> None:
        """Stop after the currently executing test; remaining tests are not run."""
        if self.finished:
            return
        logger.info("Abort requested; stopping after the current test")
        self._abort_requested = True

    @property
    def aborted(self) -> bool:
        return self._abort_requested

    async def run(self) -> RunStats:
        if self.started:
            raise RuntimeError("A runner can only be run once")
        self.started = True
        start = time.time()
        self.stats.started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        self._emit(RunEvent.RUN_BEGIN)
        try:
            await self._run_suite(self.root)
        finally:
            self.current_test = None
            self.stats.completed_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
            self.stats.duration_seconds = round(time.time() - start, 3)
            self.stats.aborted = self._abort_requested
            self.finished = True
            logger.debug(
                "Run finished: %d tests, %d passed, %d failed, %d pending, %d errors",
                self.stats.total, self.stats.passed, self.stats.failed,
                self.stats.pending, self.stats.errors,
            )
            self._emit(RunEvent.RUN_END, self.stats)
        return self.stats

    # --- traversal -------------------------------------------------------

    async def _invoke(self, fn: RunnableFn, timeout: float | None) -> None:
        result = fn()
        if not inspect.isawaitable(result):
            return
        if timeout is None:
            await result
            return
        try:
            await asyncio.wait_for(result, timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"Timeout of {timeout}s exceeded") from e

    async def _run_suite(self, suite: Suite) -> None:
        if self._abort_requested:
            return
        if not suite.is_root:
            self.stats.suites += 1
            self._emit(RunEvent.SUITE_BEGIN, suite)
        try:
            if suite.body is not None and not await self._declare(suite):
                return

            hooks_ok = True
            if not suite.pending:
                hooks_ok = await self._run_hooks(suite.before_all)
            if hooks_ok:
                for child in list(suite.children):
                    if self._abort_requested:
                        break
                    if isinstance(child, Suite):
                        await self._run_suite(child)
                    elif isinstance(child, Test):
                        await self._run_test(child)
            if not suite.pending:
                await self._run_hooks(suite.after_all)
        finally:
            if not suite.is_root:
                self._emit(RunEvent.SUITE_END, suite)

    async def _declare(self, suite: Suite) -> bool:
        body, suite.body = suite.body, None
        with self.declaring(suite):
            try:
                await self._invoke(body, self.timeout)
            except Exception as e:
                action = f"register {suite.batch_key}" if suite.batch_root else f"declare {suite.title}"
                hook = Hook("before all", body, suite, title=f'"before all" hook: {action}')
                self._fail_hook(hook, e)
                return False
        return True

    async def _run_hooks(self, hooks: list[Hook]) -> bool:
        for hook in hooks:
            try:
                await self._invoke(hook.fn, self.timeout)
            except Exception as e:
                self._fail_hook(hook, e)
                return False
        return True

    def _fail_hook(self, hook: Hook, error: BaseException) -> None:
        logger.debug("Hook failed: %s: %s", hook.full_title(), error)
        hook.error = error
        if hook.parent is not None:
            hook.parent.failed = True
        self.stats.errors += 1
        self._emit(RunEvent.TEST_FAIL, hook, error)

    async def _run_test(self, test: Test) -> None:
        if test.pending:
            self.stats.pending += 1
            self.stats.total += 1
            self._emit(RunEvent.TEST_PENDING, test)
            self._emit(RunEvent.TEST_END, test)
            return

        self.current_test = test
        self._emit(RunEvent.TEST_BEGIN, test)
        start = time.perf_counter()
        chain = test.parent.ancestors() if test.parent else []
        timeout = test.timeout if test.timeout is not None else self.timeout
        error: BaseException | None = None

        try:
            for suite in chain:
                for hook in suite.before_each:
                    await self._invoke(hook.fn, self.timeout)
            await self._invoke(test.fn, timeout)
        except Exception as e:
            error = e

        for suite in reversed(chain):
            for hook in suite.after_each:
                try:
                    await self._invoke(hook.fn, self.timeout)
                except Exception as e:
                    if error is None:
                        error = e

        test.duration_seconds = round(time.perf_counter() - start, 3)
        self.current_test = None
        self.stats.total += 1
        if error is None:
            test.state = "passed"
            self.stats.passed += 1
            self._emit(RunEvent.TEST_PASS, test)
        else:
            test.state = "failed"
            test.error = error
            self.stats.failed += 1
            self._emit(RunEvent.TEST_FAIL, test, error)
        self._emit(RunEvent.TEST_END, test)

