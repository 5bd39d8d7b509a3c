from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pyarrow as pa
import pytest

from osmrail.arrow import ARROW_ELEMENT_SCHEMA
from osmrail.arrow import METADATA_NAME
from osmrail.arrow import METADATA_VERSION
from osmrail.arrow import write_region
from osmrail.cache import RegionCache
from osmrail.cache import cache_path
from osmrail.cache import load_or_build
from osmrail.cache import store
from osmrail.errors import CacheCorruptError
from osmrail.osm.types import OsmWay
from osmrail.osm.types import Region


def test_cache_path_is_keyed_by_region_name(tmp_path: Path):
    assert cache_path(tmp_path, "austria") == tmp_path / "austria.arrow"


def test_store_and_restore_round_trip(tmp_path: Path, sample_region: Region):
    handle = store(sample_region, tmp_path / "sample.arrow")

    restored = handle.restore()

    assert restored == sample_region
    assert [way.id for way in restored.ways] == [10, 11]
    assert restored.nodes[2].tags == {"railway": "switch"}
    assert restored.nodes[1].tags is None


def test_round_trip_of_empty_region(tmp_path: Path):
    region = Region(name="empty", ways=[], nodes={})

    assert store(region, tmp_path / "empty.arrow").restore() == region


def test_round_trip_across_record_batches(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("osmrail.arrow.BATCH_SIZE", 3)
    ways = [OsmWay(id=i, nodes=[i, i + 1], tags={"ref": str(i)}) for i in range(10)]
    region = Region(name="batched", ways=ways, nodes={})

    restored = store(region, tmp_path / "batched.arrow").restore()

    assert [way.id for way in restored.ways] == list(range(10))


def test_store_leaves_no_temporary_file(tmp_path: Path, sample_region: Region):
    store(sample_region, tmp_path / "cache" / "sample.arrow")

    assert [p.name for p in (tmp_path / "cache").iterdir()] == ["sample.arrow"]


def test_handle_does_not_decode_until_restored(tmp_path: Path):
    handle = RegionCache(tmp_path / "later.arrow")

    assert not handle.exists()
    with pytest.raises(FileNotFoundError):
        handle.restore()


def test_load_or_build_builds_once(tmp_path: Path, sample_region: Region):
    rebuild = Mock(return_value=sample_region)
    path = tmp_path / "sample.arrow"

    first = load_or_build(path, rebuild)
    second = load_or_build(path, rebuild)

    assert rebuild.call_count == 1
    assert first == second
    assert second.restore() == sample_region


def test_existing_entry_is_reused_even_if_stale(tmp_path: Path, sample_region: Region):
    path = tmp_path / "sample.arrow"
    store(sample_region, path)
    newer = Region(name="sample", ways=[], nodes={})
    rebuild = Mock(return_value=newer)

    handle = load_or_build(path, rebuild, force=False)

    rebuild.assert_not_called()
    assert handle.restore() == sample_region


def test_force_rebuilds_and_overwrites(tmp_path: Path, sample_region: Region):
    path = tmp_path / "sample.arrow"
    store(sample_region, path)
    newer = Region(name="sample", ways=[OsmWay(id=99, nodes=[], tags={})], nodes={})
    rebuild = Mock(return_value=newer)

    handle = load_or_build(path, rebuild, force=True)

    rebuild.assert_called_once_with()
    assert handle.restore() == newer


def test_failed_rebuild_keeps_previous_entry(tmp_path: Path, sample_region: Region):
    path = tmp_path / "sample.arrow"
    store(sample_region, path)

    with pytest.raises(RuntimeError):
        load_or_build(path, Mock(side_effect=RuntimeError("boom")), force=True)

    assert RegionCache(path).restore() == sample_region


def test_garbage_bytes_are_corrupt(tmp_path: Path):
    path = tmp_path / "garbage.arrow"
    path.write_bytes(b"this is not an arrow file")

    with pytest.raises(CacheCorruptError):
        RegionCache(path).restore()


def test_truncated_entry_is_corrupt(tmp_path: Path, sample_region: Region):
    path = tmp_path / "sample.arrow"
    store(sample_region, path)
    path.write_bytes(path.read_bytes()[:-40])

    with pytest.raises(CacheCorruptError):
        RegionCache(path).restore()


def test_unknown_format_version_is_corrupt(tmp_path: Path, sample_region: Region):
    path = tmp_path / "old.arrow"
    write_region(sample_region, path)
    table = pa.ipc.open_file(pa.BufferReader(path.read_bytes())).read_all()
    schema = ARROW_ELEMENT_SCHEMA.with_metadata({METADATA_NAME: b"sample", METADATA_VERSION: b"0"})
    with pa.OSFile(str(path), "wb") as sink:
        with pa.ipc.new_file(sink, schema) as writer:
            writer.write_table(table.replace_schema_metadata(schema.metadata))

    with pytest.raises(CacheCorruptError, match="version"):
        RegionCache(path).restore()


def test_foreign_schema_is_corrupt(tmp_path: Path):
    path = tmp_path / "foreign.arrow"
    table = pa.table({"x": [1, 2, 3]})
    with pa.OSFile(str(path), "wb") as sink:
        with pa.ipc.new_file(sink, table.schema) as writer:
            writer.write_table(table)

    with pytest.raises(CacheCorruptError, match="schema"):
        RegionCache(path).restore()
