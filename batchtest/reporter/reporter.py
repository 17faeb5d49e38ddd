"""Report generation orchestration."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from batchtest.models.config import BatchTestConfig
from batchtest.models.test_result import RunResult

from .json_report import generate_json_report
from .regression_detector import detect_regressions

logger = logging.getLogger(__name__)


class Reporter:
    """Generates reports from run results."""

    def __init__(self, config: BatchTestConfig):
        self.config = config

    def generate_reports(
        self,
        run_result: RunResult,
        previous_run: RunResult | None = None,
        output_dir: Path | None = None,
    ) -> dict[str, str]:
        """Generate all configured report formats. Returns format -> file path."""
        out_dir = output_dir or Path(self.config.report_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        generated = {}
        logger.debug("Report output directory: %s", out_dir)

        if not run_result.summary:
            run_result.summary = self.generate_summary(run_result)

        regressions = []
        if previous_run:
            logger.debug("Detecting regressions against %s...", previous_run.run_id)
            regressions = detect_regressions(previous_run, run_result)
            logger.debug("Found %d regressions", len(regressions))

        for fmt in self.config.report_formats:
            match fmt:
                case "json":
                    path = out_dir / f"report_{run_result.run_id}.json"
                    generate_json_report(run_result, regressions, path)
                    generated["json"] = str(path)
                    logger.info("JSON report: %s", path)
                case _:
                    logger.warning("Unsupported report format: %s", fmt)

        return generated

    def generate_summary(self, run_result: RunResult) -> str:
        """One-paragraph plain text summary of a run."""
        parts = [
            f"Ran {len(run_result.batch_keys)} batches: {run_result.total_tests} tests "
            f"in {run_result.duration_seconds:.1f}s.",
            f"Results: {run_result.passed} passed, {run_result.failed} failed, "
            f"{run_result.pending} pending, {run_result.errors} errors.",
        ]
        if run_result.aborted:
            parts.append("The run was aborted.")
        failures = [r for r in run_result.test_results if r.result in ("fail", "error")]
        if failures:
            parts.append(f"Key failures: {', '.join(f.full_title for f in failures[:5])}")
        return " ".join(parts)

    def load_previous_run_result(self, current_run_id: str, report_dir: Path | None = None) -> RunResult | None:
        """Load the most recent previous RunResult from existing JSON reports."""
        report_dir = report_dir or Path(self.config.report_output_dir)
        if not report_dir.exists():
            return None

        report_files = sorted(
            report_dir.glob("report_run_*.json"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )

        for report_path in report_files:
            try:
                with open(report_path) as f:
                    data = json.load(f)
                if data.get("run_id") == current_run_id:
                    continue
                return RunResult.model_validate(data)
            except Exception as e:
                logger.debug("Could not load previous run from %s: %s", report_path, e)
                continue

        return None
