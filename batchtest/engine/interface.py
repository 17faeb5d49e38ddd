"""BDD declaration interface: describe / it / before / after / before_each / after_each."""

from __future__ import annotations

from batchtest.engine.runnable import Hook, RunnableFn, Suite, Test
from batchtest.engine.runner import Runner


class SuiteDeclarer:
    """`describe(title, fn)`; every suite it creates carries the declarer's batch key."""

    def __init__(self, runner: Runner, batch_key: str | None = None):
        self._runner = runner
        self.batch_key = batch_key

    def __call__(self, title: str, fn: RunnableFn) -> Suite:
        return self._declare(title, fn, pending=False)

    def skip(self, title: str, fn: RunnableFn) -> Suite:
        """Declare a suite whose tests are all reported as pending."""
        return self._declare(title, fn, pending=True)

    def _declare(self, title: str, fn: RunnableFn, pending: bool) -> Suite:
        suite = Suite(title, batch_key=self.batch_key, body=fn, pending=pending)
        return self._runner.current_suite.add_suite(suite)


class TestDeclarer:
    """`it(title, fn)`; a test without a body is pending."""

    __test__ = False

    def __init__(self, runner: Runner, batch_key: str | None = None):
        self._runner = runner
        self.batch_key = batch_key

    def __call__(self, title: str, fn: RunnableFn | None = None, *, timeout: float | None = None) -> Test:
        test = Test(title, fn, batch_key=self.batch_key, timeout=timeout)
        return self._runner.current_suite.add_test(test)

    def skip(self, title: str, fn: RunnableFn | None = None) -> Test:
        test = Test(title, None, batch_key=self.batch_key)
        return self._runner.current_suite.add_test(test)


class BddInterface:
    def __init__(self, runner: Runner):
        self.runner = runner

    def describe(self, batch_key: str | None = None) -> SuiteDeclarer:
        return SuiteDeclarer(self.runner, batch_key)

    def it(self, batch_key: str | None = None) -> TestDeclarer:
        return TestDeclarer(self.runner, batch_key)

    def before(self, fn: RunnableFn, title: str | None = None) -> Hook:
        return self.runner.current_suite.add_hook("before all", fn, title)

    def after(self, fn: RunnableFn, title: str | None = None) -> Hook:
        return self.runner.current_suite.add_hook("after all", fn, title)

    def before_each(self, fn: RunnableFn, title: str | None = None) -> Hook:
        return self.runner.current_suite.add_hook("before each", fn, title)

    def after_each(self, fn: RunnableFn, title: str | None = None) -> Hook:
        return self.runner.current_suite.add_hook("after each", fn, title)
