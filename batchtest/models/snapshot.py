"""Snapshot record data structures."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class SnapshotRecord(BaseModel):
    identity: str  # "<full test title> <ordinal>", unique within a directory
    stored_value: str  # output of serialize_value()
    source_file: Path
    dirty: bool = False
