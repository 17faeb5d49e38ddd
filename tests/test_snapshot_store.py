"""Tests for snapshot serialization and the snapshot store."""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pytest
from pydantic import BaseModel

from batchtest.snapshots.errors import SnapshotError, SnapshotErrorKind
from batchtest.snapshots.serializer import normalize_value, serialize_value
from batchtest.snapshots.store import SNAPSHOT_SUFFIX, SnapshotStore


class Color(Enum):
    RED = "red"


class Point(BaseModel):
    x: int
    y: int


@dataclass
class Box:
    width: int
    height: int


class Plain:
    def __init__(self):
        self.name = "plain"
        self._hidden = 1


# ============================================================================
# Serializer
# ============================================================================


class TestSerializer:
    """Tests for the deterministic pretty-printer."""

    def test_key_order_does_not_matter(self):
        assert serialize_value({"b": 1, "a": 2}) == serialize_value({"a": 2, "b": 1})

    def test_set_order_does_not_matter(self):
        assert serialize_value({3, 1, 2}) == serialize_value({2, 3, 1})
        assert normalize_value({3, 1, 2}) == [1, 2, 3]

    def test_list_order_matters(self):
        assert serialize_value([1, 2]) != serialize_value([2, 1])

    def test_tuple_like_list(self):
        assert serialize_value((1, "a")) == serialize_value([1, "a"])

    def test_pretty_printed(self):
        assert serialize_value({"a": [1]}) == '{\n  "a": [\n    1\n  ]\n}'

    def test_models_and_dataclasses(self):
        assert normalize_value(Point(x=1, y=2)) == {"x": 1, "y": 2}
        assert normalize_value(Box(width=3, height=4)) == {"width": 3, "height": 4}

    def test_enum(self):
        assert normalize_value(Color.RED) == "red"

    def test_non_string_keys(self):
        assert normalize_value({1: "a"}) == {"<int>1": "a"}
        assert normalize_value({(1, 2): "a"}) == {"<tuple>[1, 2]": "a"}

    def test_non_string_key_does_not_collide_with_string_key(self):
        both = {1: "a", "1": "b"}
        assert normalize_value(both) == {"<int>1": "a", "1": "b"}
        assert serialize_value(both) != serialize_value({"1": "b"})

    def test_self_containing_values(self):
        items = [1]
        items.append(items)
        assert normalize_value(items) == [1, "[Circular]"]

        node = {"name": "root"}
        node["self"] = node
        assert normalize_value(node) == {"name": "root", "self": "[Circular]"}

        plain = Plain()
        plain.parent = plain
        assert normalize_value(plain) == {"__type__": "Plain", "name": "plain", "parent": "[Circular]"}

    def test_shared_reference_is_not_circular(self):
        shared = {"x": 1}
        assert normalize_value([shared, shared]) == [{"x": 1}, {"x": 1}]

    def test_path(self):
        assert normalize_value(Path("a/b")) == "a/b"

    def test_plain_object_uses_public_attributes(self):
        assert normalize_value(Plain()) == {"__type__": "Plain", "name": "plain"}

    def test_unicode_kept(self):
        assert "héllo" in serialize_value("héllo")


# ============================================================================
# Default snapshot directory
# ============================================================================


class TestDefaultSnapDir:
    """Tests for SnapshotStore.get_default_snap_dir."""

    def test_namespace_and_identifier(self):
        assert SnapshotStore.get_default_snap_dir("ns.smoke") == "__snapshots__/ns/smoke"

    def test_split_at_first_separator(self):
        assert SnapshotStore.get_default_snap_dir("ns.a.b") == "__snapshots__/ns/a.b"

    def test_deterministic(self):
        assert SnapshotStore.get_default_snap_dir("ns.x") == SnapshotStore.get_default_snap_dir("ns.x")

    def test_unsafe_characters_escaped(self):
        path = SnapshotStore.get_default_snap_dir("a/b.c d")
        assert path == "__snapshots__/a%2Fb/c%20d"

    def test_dot_segments_never_escape_root(self):
        for key in (".", "..", "...", "ns..", "..ns"):
            parts = SnapshotStore.get_default_snap_dir(key).split("/")
            assert parts[0] == "__snapshots__"
            assert all(p not in ("", ".", "..") for p in parts)

    def test_distinct_keys_distinct_dirs(self):
        keys = [
            "a.b", "a.b.c", "a.b/c", "a/b.c", "a.b%2Fc", "a%2Fb.c",
            ".", "..", "...", "%.", ".%", "a.", ".a", "a..", "a.%", "a.%25",
        ]
        dirs = [SnapshotStore.get_default_snap_dir(k) for k in keys]
        assert len(set(dirs)) == len(keys)


class TestFileNames:
    """Tests for per-group snapshot file names."""

    def test_file_name_shape(self):
        name = SnapshotStore.file_name_for("Login form")
        assert name.startswith("Login-form-")
        assert name.endswith(SNAPSHOT_SUFFIX)

    def test_similar_groups_distinct(self):
        assert SnapshotStore.file_name_for("a b") != SnapshotStore.file_name_for("a/b")

    def test_empty_slug(self):
        assert SnapshotStore.file_name_for("???").startswith("snapshots-")


# ============================================================================
# Store
# ============================================================================


def _write_snap_file(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


class TestSnapshotStore:
    """Tests for loading, comparing and persisting snapshots."""

    def test_snap_dir_uses_resolver(self, snap_base):
        store = SnapshotStore(snap_base, resolve_snap_dir=lambda key: "custom")
        assert store.snap_dir_for("ns.a") == snap_base / "custom"

    def test_snap_dir_falls_back_to_default(self, store, snap_base):
        assert store.snap_dir_for("ns.a") == snap_base / "__snapshots__" / "ns" / "a"

    @pytest.mark.asyncio
    async def test_load_reads_all_files_in_dir(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        _write_snap_file(snap_dir / f"one{SNAPSHOT_SUFFIX}", {"t 1": '"x"'})
        _write_snap_file(snap_dir / f"two{SNAPSHOT_SUFFIX}", {"u 1": '"y"'})

        await store.load_batch_snaps(["ns.a"])

        assert store.is_loaded(snap_dir)
        assert store.get_record(snap_dir, "t 1").stored_value == '"x"'
        assert store.get_record(snap_dir, "u 1").source_file == snap_dir / f"two{SNAPSHOT_SUFFIX}"

    @pytest.mark.asyncio
    async def test_load_missing_dir(self, store):
        await store.load_batch_snaps(["ns.none"])
        assert store.is_loaded(store.snap_dir_for("ns.none"))
        assert store.get_record(store.snap_dir_for("ns.none"), "x 1") is None

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        _write_snap_file(snap_dir / f"one{SNAPSHOT_SUFFIX}", {"t 1": '"x"'})
        await store.load_batch_snaps(["ns.a"])

        _write_snap_file(snap_dir / f"one{SNAPSHOT_SUFFIX}", {"t 1": '"changed"'})
        await store.load_batch_snaps(["ns.a"])

        assert store.get_record(snap_dir, "t 1").stored_value == '"x"'

    @pytest.mark.asyncio
    async def test_corrupt_file_skipped(self, store, caplog):
        snap_dir = store.snap_dir_for("ns.a")
        snap_dir.mkdir(parents=True)
        (snap_dir / f"bad{SNAPSHOT_SUFFIX}").write_text("{not json", encoding="utf-8")
        _write_snap_file(snap_dir / f"good{SNAPSHOT_SUFFIX}", {"t 1": '"x"'})

        await store.load_batch_snaps(["ns.a"])

        assert store.get_record(snap_dir, "t 1") is not None
        assert "Failed to load snapshot file" in caplog.text

    def test_compare_missing(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        with pytest.raises(SnapshotError) as exc_info:
            store.compare("t 1", {"a": 1}, snap_dir=snap_dir, group="t")
        err = exc_info.value
        assert err.kind == SnapshotErrorKind.MISSING
        assert err.path == store.snapshot_path(snap_dir, "t")
        assert err.path.parent == snap_dir
        assert err.offer_update is True

    @pytest.mark.asyncio
    async def test_compare_match(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        _write_snap_file(snap_dir / f"one{SNAPSHOT_SUFFIX}", {"t 1": serialize_value({"a": 1, "b": 2})})
        await store.load_batch_snaps(["ns.a"])
        store.compare("t 1", {"b": 2, "a": 1}, snap_dir=snap_dir, group="t")

    @pytest.mark.asyncio
    async def test_compare_mismatch_carries_both_forms(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        source = snap_dir / f"one{SNAPSHOT_SUFFIX}"
        _write_snap_file(source, {"t 1": serialize_value([1, 2])})
        await store.load_batch_snaps(["ns.a"])

        with pytest.raises(SnapshotError) as exc_info:
            store.compare("t 1", [1, 3], snap_dir=snap_dir, group="t")
        err = exc_info.value
        assert err.kind == SnapshotErrorKind.MISMATCH
        assert err.actual == serialize_value([1, 3])
        assert err.expected == serialize_value([1, 2])
        assert err.path == source
        assert err.show_diff is True

    def test_update_mode_records_instead_of_comparing(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        store.update_mode = True
        store.compare("t 1", "value", snap_dir=snap_dir, group="t")

        record = store.get_record(snap_dir, "t 1")
        assert record.dirty is True
        assert record.stored_value == '"value"'
        assert record.source_file == store.snapshot_path(snap_dir, "t")

    @pytest.mark.asyncio
    async def test_update_snapshots_merges_into_existing_file(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        path = store.snapshot_path(snap_dir, "t")
        _write_snap_file(path, {"other 1": '"kept"', "t 1": '"old"'})
        await store.load_batch_snaps(["ns.a"])

        store.update_mode = True
        store.compare("t 1", "new", snap_dir=snap_dir, group="t")
        written = await store.update_snapshots()

        assert written == [path]
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"other 1": '"kept"', "t 1": '"new"'}
        assert store.dirty_records == []

    @pytest.mark.asyncio
    async def test_update_snapshots_nothing_dirty(self, store):
        assert await store.update_snapshots() == []

    @pytest.mark.asyncio
    async def test_write_failure_keeps_records_dirty(self, store, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        snap_dir = blocker / "snaps"

        store.update_mode = True
        store.compare("t 1", "x", snap_dir=snap_dir, group="t")
        written = await store.update_snapshots()

        assert written == []
        assert len(store.dirty_records) == 1
        assert "Failed to write snapshot file" in caplog.text

    @pytest.mark.asyncio
    async def test_undecodable_file_is_rewritten(self, store, caplog):
        snap_dir = store.snap_dir_for("ns.a")
        path = store.snapshot_path(snap_dir, "t")
        path.parent.mkdir(parents=True)
        path.write_bytes(b'{"x": "\xff\xfe"}')

        store.update_mode = True
        store.compare("t 1", "new", snap_dir=snap_dir, group="t")
        written = await store.update_snapshots()

        assert written == [path]
        assert json.loads(path.read_text(encoding="utf-8")) == {"t 1": '"new"'}
        assert store.dirty_records == []
        assert "is corrupt" in caplog.text

    @pytest.mark.asyncio
    async def test_recorded_values_survive_a_later_load(self, store):
        snap_dir = store.snap_dir_for("ns.a")
        store.update_mode = True
        store.compare("t 1", "memory", snap_dir=snap_dir, group="t")
        _write_snap_file(store.snapshot_path(snap_dir, "t"), {"t 1": '"disk"'})

        await store.load_batch_snaps(["ns.a"])

        assert store.get_record(snap_dir, "t 1").stored_value == '"memory"'
