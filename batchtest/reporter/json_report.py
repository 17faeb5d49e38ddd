"""JSON report output.

The report is the serialized RunResult plus three derived sections:
per-batch result counts, tests whose snapshot can be regenerated, and
regressions against the previous run.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from batchtest.models.test_result import RunResult

from .regression_detector import Regression

RESULT_KINDS = ("pass", "fail", "pending", "error")


def _counts_by_batch(run_result: RunResult) -> dict[str, dict[str, int]]:
    counts = {key: dict.fromkeys(RESULT_KINDS, 0) for key in run_result.batch_keys}
    for test in run_result.test_results:
        if test.batch_key is None:
            continue
        bucket = counts.setdefault(test.batch_key, dict.fromkeys(RESULT_KINDS, 0))
        bucket[test.result] = bucket.get(test.result, 0) + 1
    return counts


def _snapshot_problems(run_result: RunResult) -> list[dict]:
    return [
        {
            "batch_key": test.batch_key,
            "full_title": test.full_title,
            "kind": test.failure.kind,
            "snapshot_path": test.failure.snapshot_path,
        }
        for test in run_result.test_results
        if test.failure is not None and test.failure.offer_snapshot_update
    ]


def generate_json_report(
    run_result: RunResult,
    regressions: list[Regression],
    output_path: Path,
) -> None:
    """Write a machine-readable JSON report."""
    report = run_result.model_dump(mode="json")
    report["batches"] = _counts_by_batch(run_result)
    report["snapshot_problems"] = _snapshot_problems(run_result)
    report["regressions"] = [asdict(r) for r in regressions]

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
