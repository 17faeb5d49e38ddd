"""Run result data structures produced by the batch reporter."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class FailureInfo(BaseModel):
    """Tagged description of a failed test or hook, as relayed to results sinks."""
    kind: str  # assertion, missing_snapshot, snapshot_mismatch, error
    message: str
    actual: Optional[str] = None  # serialized forms, for diff rendering
    expected: Optional[str] = None
    snapshot_path: Optional[str] = None
    offer_snapshot_update: bool = False


class RunStats(BaseModel):
    total: int = 0  # tests that reached a terminal state (passed + failed + pending)
    passed: int = 0
    failed: int = 0
    pending: int = 0
    errors: int = 0  # hook and batch registration failures
    suites: int = 0
    started_at: str = ""
    completed_at: str = ""
    duration_seconds: float = 0.0
    aborted: bool = False


class TestResult(BaseModel):
    test_id: str
    test_name: str
    full_title: str
    batch_key: Optional[str] = None
    result: str  # pass, fail, pending, error
    duration_seconds: float = 0.0
    failure_reason: Optional[str] = None
    failure: Optional[FailureInfo] = None


class RunResult(BaseModel):
    run_id: str
    batch_keys: list[str] = Field(default_factory=list)
    started_at: str
    completed_at: str
    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    pending: int = 0
    errors: int = 0
    aborted: bool = False
    duration_seconds: float = 0.0
    test_results: list[TestResult] = Field(default_factory=list)
    snapshots_written: list[str] = Field(default_factory=list)
    summary: str = ""
