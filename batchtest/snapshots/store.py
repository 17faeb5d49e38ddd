"""Snapshot store - loads, compares and persists recorded values per batch directory.

Records are cached in memory per snapshot directory. Directories are only read
when a run includes a batch that uses them, and each directory is read at most
once per store. The cache is shared mutable state without locking: the store
assumes that at most one run uses it at a time.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Iterable, Optional
from urllib.parse import quote

from batchtest.models.snapshot import SnapshotRecord
from batchtest.utils import BATCH_KEY_SEPARATOR, get_batch_name_parts

from .errors import SnapshotError
from .serializer import serialize_value

logger = logging.getLogger(__name__)

SNAPSHOT_ROOT = "__snapshots__"
SNAPSHOT_SUFFIX = ".snap.json"


def _path_segment(text: str) -> str:
    # quote() escapes "%", so a "%" followed by a non-hex character never comes out of it
    if text in ("", ".", ".."):
        return "%" + text
    return quote(text, safe="")


class SnapshotStore:
    """In-memory snapshot cache backed by JSON files below `base_path`."""

    def __init__(
        self,
        base_path: Path,
        resolve_snap_dir: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.base_path = Path(base_path)
        # batch key -> snapshot directory relative to base_path (None: use the default)
        self.resolve_snap_dir = resolve_snap_dir
        # Sticky, one-shot request to update snapshots in the next run
        self.enable_updates: Optional[bool] = None
        # Whether comparisons in the current run record instead of compare
        self.update_mode = False
        self._records: dict[Path, dict[str, SnapshotRecord]] = {}
        self._loaded_dirs: set[Path] = set()

    @staticmethod
    def get_default_snap_dir(batch_key: str) -> str:
        """Map a batch key to its default snapshot directory (relative, POSIX style).

        `<namespace>.<identifier>` becomes `__snapshots__/<namespace>/<identifier>`
        with both segments escaped, so different keys never share a directory.
        """
        if BATCH_KEY_SEPARATOR not in batch_key:
            return f"{SNAPSHOT_ROOT}/{_path_segment(batch_key)}"
        namespace, identifier = get_batch_name_parts(batch_key)
        return f"{SNAPSHOT_ROOT}/{_path_segment(namespace)}/{_path_segment(identifier)}"

    @staticmethod
    def file_name_for(group: str) -> str:
        """File name holding every snapshot of one group (a batch's top-level title)."""
        slug = re.sub(r"[^A-Za-z0-9_-]+", "-", group).strip("-")[:40] or "snapshots"
        digest = hashlib.sha1(group.encode("utf-8")).hexdigest()[:8]
        return f"{slug}-{digest}{SNAPSHOT_SUFFIX}"

    def snap_dir_for(self, batch_key: str) -> Path:
        rel = self.resolve_snap_dir(batch_key) if self.resolve_snap_dir else None
        return self.base_path / (rel or self.get_default_snap_dir(batch_key))

    def snapshot_path(self, snap_dir: Path, group: str) -> Path:
        return Path(snap_dir) / self.file_name_for(group)

    # --- loading ---------------------------------------------------------

    async def load_batch_snaps(self, batch_keys: Iterable[str]) -> None:
        """Read the snapshot directories of the given batches that are not cached yet."""
        for key in batch_keys:
            snap_dir = self.snap_dir_for(key)
            if snap_dir in self._loaded_dirs:
                logger.debug("Snapshots for %s already loaded from %s", key, snap_dir)
                continue
            self._loaded_dirs.add(snap_dir)
            loaded = await asyncio.to_thread(self._read_dir, snap_dir)
            cached = self._records.setdefault(snap_dir, {})
            for identity, record in loaded.items():
                # Records recorded in memory win over what is on disk
                cached.setdefault(identity, record)
            logger.debug("Loaded %d snapshots for %s from %s", len(loaded), key, snap_dir)

    def _read_dir(self, snap_dir: Path) -> dict[str, SnapshotRecord]:
        records: dict[str, SnapshotRecord] = {}
        if not snap_dir.is_dir():
            return records
        for path in sorted(snap_dir.glob(f"*{SNAPSHOT_SUFFIX}")):
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
            except Exception as e:
                logger.warning("Failed to load snapshot file %s: %s. Skipping.", path, e)
                continue
            for identity, value in data.items():
                if not isinstance(value, str):
                    logger.warning("Ignoring non-string snapshot %r in %s", identity, path)
                    continue
                if identity in records:
                    logger.warning("Duplicate snapshot %r in %s", identity, snap_dir)
                records[identity] = SnapshotRecord(
                    identity=identity, stored_value=value, source_file=path,
                )
        return records

    def is_loaded(self, snap_dir: Path) -> bool:
        return Path(snap_dir) in self._loaded_dirs

    def get_record(self, snap_dir: Path, identity: str) -> SnapshotRecord | None:
        return self._records.get(Path(snap_dir), {}).get(identity)

    # --- comparison ------------------------------------------------------

    def compare(self, identity: str, actual: Any, *, snap_dir: Path, group: str) -> None:
        """Check `actual` against the recorded snapshot, or record it in update mode.

        Raises SnapshotError (kind MISSING or MISMATCH) when the check fails.
        """
        snap_dir = Path(snap_dir)
        records = self._records.setdefault(snap_dir, {})
        serialized = serialize_value(actual)
        record = records.get(identity)

        if self.update_mode:
            if record is None:
                records[identity] = SnapshotRecord(
                    identity=identity,
                    stored_value=serialized,
                    source_file=self.snapshot_path(snap_dir, group),
                    dirty=True,
                )
            else:
                record.stored_value = serialized
                record.dirty = True
            logger.debug("Recorded snapshot %r", identity)
            return

        if record is None:
            raise SnapshotError.missing(identity, self.snapshot_path(snap_dir, group))
        if record.stored_value != serialized:
            raise SnapshotError.mismatch(
                identity, record.source_file, actual=serialized, expected=record.stored_value,
            )

    # --- persistence -----------------------------------------------------

    @property
    def dirty_records(self) -> list[SnapshotRecord]:
        return [r for records in self._records.values() for r in records.values() if r.dirty]

    async def update_snapshots(self) -> list[Path]:
        """Write every dirty record into its file, keeping the file's other entries.

        Returns the files written. Files that cannot be written are logged and
        their records stay dirty.
        """
        by_file: dict[Path, list[SnapshotRecord]] = {}
        for record in self.dirty_records:
            by_file.setdefault(record.source_file, []).append(record)

        written: list[Path] = []
        for path, records in by_file.items():
            try:
                await asyncio.to_thread(self._merge_into_file, path, records)
            except (OSError, ValueError) as e:
                logger.error("Failed to write snapshot file %s: %s", path, e)
                continue
            for record in records:
                record.dirty = False
            written.append(path)

        if written:
            logger.info("Updated %d snapshot file(s)", len(written))
        return written

    def _merge_into_file(self, path: Path, records: list[SnapshotRecord]) -> None:
        existing: dict[str, str] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    existing = data
                else:
                    logger.warning("Snapshot file %s is not a JSON object; rewriting it", path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Snapshot file %s is corrupt (%s); rewriting it", path, e)

        for record in records:
            existing[record.identity] = record.stored_value

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(existing, f, indent=2, sort_keys=True, ensure_ascii=False)
            f.write("\n")
        logger.debug("Saved %d snapshot(s) to %s", len(records), path)
