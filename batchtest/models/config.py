"""Configuration models for batchtest."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BatchTestConfig(BaseModel):
    # Batch sources: importable modules exposing register_batches(registry)
    batch_modules: list[str] = Field(default_factory=list)

    # Namespaces accepted without a warning. None disables namespace validation;
    # the namespaces of loaded batch modules are always added by the CLI.
    known_namespaces: Optional[list[str]] = None

    # Selection used by `batchtest run` when no keys are given on the command line.
    # Empty means "every pre-selected batch".
    selected_batches: list[str] = Field(default_factory=list)

    # Storage
    data_dir: str = ".batchtest"  # snapshot directories are resolved below this

    # Execution
    test_timeout_seconds: Optional[float] = 10.0  # async test bodies only

    # Reporting
    report_formats: list[str] = Field(default_factory=lambda: ["json"])
    report_output_dir: str = "./batchtest-reports"

    @field_validator("test_timeout_seconds")
    @classmethod
    def positive_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("test_timeout_seconds must be positive or null")
        return v

    @classmethod
    def load(cls, path: str | Path) -> "BatchTestConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
