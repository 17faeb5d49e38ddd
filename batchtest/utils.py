"""Helpers shared by the registry, the reporters and test bodies (exposed as `context.utils`)."""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batchtest.engine.runnable import Suite, Test

BATCH_KEY_SEPARATOR = "."


class RunnableState(str, Enum):
    IN_PROGRESS = "progress"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


async def pause(seconds: float) -> None:
    """Suspend the current test body for the given number of seconds."""
    await asyncio.sleep(seconds)


def get_batch_name_parts(batch_key: str) -> tuple[str, str]:
    """Split a batch key into (namespace, identifier) at the first separator.

    A key without a separator has an empty identifier.
    """
    namespace, _, identifier = batch_key.partition(BATCH_KEY_SEPARATOR)
    return namespace, identifier


def get_test_state(test: Test) -> RunnableState:
    if test.pending:
        return RunnableState.PENDING
    if test.state is None:
        return RunnableState.IN_PROGRESS
    if test.state == "passed":
        return RunnableState.SUCCESS
    return RunnableState.FAILURE


def get_suite_state(suite: Suite) -> RunnableState:
    """Derive a suite's state from its own hook failures and its children."""
    if suite.pending:
        return RunnableState.PENDING
    if suite.failed:
        return RunnableState.FAILURE
    if any(get_test_state(t) == RunnableState.FAILURE for t in suite.tests):
        return RunnableState.FAILURE
    if any(get_suite_state(s) == RunnableState.FAILURE for s in suite.suites):
        return RunnableState.FAILURE
    return RunnableState.SUCCESS


def truncate(text: str, length: int = 18) -> str:
    """Shorten text to a single line of at most `length` characters plus an ellipsis."""
    dots = "..." if len(text) > length else ""
    return re.sub(r"\r?\n|\r", " ", text[: max(0, length)]) + dots
