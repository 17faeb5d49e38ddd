"""Snapshot assertion errors."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional


class SnapshotErrorKind(str, Enum):
    MISSING = "missing_snapshot"
    MISMATCH = "snapshot_mismatch"


class SnapshotError(AssertionError):
    """A failed snapshot comparison.

    `kind` tells the two cases apart: MISSING carries the path the snapshot
    would be written to, MISMATCH additionally carries both serialized forms.
    Either way the results surface should offer a snapshot update.
    """

    offer_update = True

    def __init__(
        self,
        kind: SnapshotErrorKind,
        message: str,
        identity: str,
        path: Path,
        actual: Optional[str] = None,
        expected: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.identity = identity
        self.path = path
        self.actual = actual
        self.expected = expected
        self.show_diff = kind == SnapshotErrorKind.MISMATCH

    @classmethod
    def missing(cls, identity: str, path: Path) -> SnapshotError:
        return cls(
            SnapshotErrorKind.MISSING,
            f"Missing snapshot for {identity!r}; expected it in {path}",
            identity, path,
        )

    @classmethod
    def mismatch(cls, identity: str, path: Path, actual: str, expected: str) -> SnapshotError:
        return cls(
            SnapshotErrorKind.MISMATCH,
            f"Value does not match snapshot {identity!r} ({path})",
            identity, path, actual=actual, expected=expected,
        )
