"""Regression detection - compares run results to find new failures."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from batchtest.models.test_result import RunResult, TestResult

logger = logging.getLogger(__name__)


@dataclass
class Regression:
    batch_key: str | None
    full_title: str
    previous_result: str
    current_result: str
    failure_reason: str | None = None


def _result_key(result: TestResult) -> tuple[str | None, str]:
    return (result.batch_key, result.full_title)


def detect_regressions(previous: RunResult, current: RunResult) -> list[Regression]:
    """Compare two runs and find tests that regressed (pass -> fail/error).

    Tests are matched by owning batch and full title; tests that only exist
    in one of the runs are ignored.
    """
    prev_by_key = {_result_key(r): r for r in previous.test_results}

    regressions = []
    for result in current.test_results:
        prev = prev_by_key.get(_result_key(result))
        if prev and prev.result == "pass" and result.result in ("fail", "error"):
            regressions.append(Regression(
                batch_key=result.batch_key,
                full_title=result.full_title,
                previous_result=prev.result,
                current_result=result.result,
                failure_reason=result.failure_reason,
            ))

    if regressions:
        logger.warning("Detected %d regressions", len(regressions))
    return regressions
