"""Tests for shared helpers."""

import pytest

from batchtest.engine.runnable import Suite, Test
from batchtest.utils import (
    RunnableState,
    get_batch_name_parts,
    get_suite_state,
    get_test_state,
    pause,
    truncate,
)


class TestBatchNameParts:
    def test_split(self):
        assert get_batch_name_parts("ns.smoke") == ("ns", "smoke")

    def test_split_at_first_separator(self):
        assert get_batch_name_parts("ns.a.b") == ("ns", "a.b")

    def test_no_separator(self):
        assert get_batch_name_parts("smoke") == ("smoke", "")


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("short") == "short"

    def test_long_text(self):
        assert truncate("a" * 20) == "a" * 18 + "..."

    def test_newlines_flattened(self):
        assert truncate("a\nb\r\nc", 10) == "a b c"


class TestStates:
    """Tests for get_test_state() / get_suite_state()."""

    def test_test_states(self):
        test = Test("t", lambda: None)
        assert get_test_state(test) == RunnableState.IN_PROGRESS
        test.state = "passed"
        assert get_test_state(test) == RunnableState.SUCCESS
        test.state = "failed"
        assert get_test_state(test) == RunnableState.FAILURE
        assert get_test_state(Test("pending")) == RunnableState.PENDING

    def test_suite_fails_through_nested_child(self):
        outer = Suite("outer")
        inner = outer.add_suite(Suite("inner"))
        test = inner.add_test(Test("t", lambda: None))
        test.state = "passed"
        assert get_suite_state(outer) == RunnableState.SUCCESS
        test.state = "failed"
        assert get_suite_state(outer) == RunnableState.FAILURE

    def test_suite_with_failed_hook(self):
        suite = Suite("s")
        suite.failed = True
        assert get_suite_state(suite) == RunnableState.FAILURE

    def test_pending_suite(self):
        assert get_suite_state(Suite("s", pending=True)) == RunnableState.PENDING


@pytest.mark.asyncio
async def test_pause():
    await pause(0)
