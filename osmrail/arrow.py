from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Iterator
from pathlib import Path

import pyarrow as pa
from more_itertools import batched

from osmrail.errors import CacheCorruptError
from osmrail.osm.types import OsmNode
from osmrail.osm.types import OsmWay
from osmrail.osm.types import Region

FORMAT_VERSION = "1"

METADATA_NAME = b"osmrail.region"
METADATA_VERSION = b"osmrail.format_version"

KIND_WAY = "way"
KIND_NODE = "node"

BATCH_SIZE = 64 * 1024

TAGS_TYPE = pa.map_(pa.string(), pa.string())

ARROW_ELEMENT_FIELDS = [
    pa.field("kind", pa.string(), nullable=False),
    pa.field("id", pa.int64(), nullable=False),
    pa.field("tags", TAGS_TYPE),
    pa.field("latitude", pa.float64()),
    pa.field("longitude", pa.float64()),
    pa.field("nodes", pa.large_list(pa.int64())),
]

ARROW_ELEMENT_SCHEMA = pa.schema(ARROW_ELEMENT_FIELDS)


def _tag_items(tags: dict[str, str] | None) -> list[tuple[str, str]] | None:
    if tags is None:
        return None
    return list(tags.items())


def record_batch_for_ways(ways: list[OsmWay]) -> pa.RecordBatch:
    arrays = [
        pa.array([KIND_WAY] * len(ways), type=pa.string()),
        pa.array([way.id for way in ways], type=pa.int64()),
        pa.array([_tag_items(way.tags) for way in ways], type=TAGS_TYPE),
        pa.nulls(len(ways), type=pa.float64()),
        pa.nulls(len(ways), type=pa.float64()),
        pa.array([way.nodes for way in ways], type=pa.large_list(pa.int64())),
    ]
    return pa.RecordBatch.from_arrays(arrays, schema=ARROW_ELEMENT_SCHEMA)


def record_batch_for_nodes(nodes: list[OsmNode]) -> pa.RecordBatch:
    arrays = [
        pa.array([KIND_NODE] * len(nodes), type=pa.string()),
        pa.array([node.id for node in nodes], type=pa.int64()),
        pa.array([_tag_items(node.tags) for node in nodes], type=TAGS_TYPE),
        pa.array([node.latitude for node in nodes], type=pa.float64()),
        pa.array([node.longitude for node in nodes], type=pa.float64()),
        pa.nulls(len(nodes), type=pa.large_list(pa.int64())),
    ]
    return pa.RecordBatch.from_arrays(arrays, schema=ARROW_ELEMENT_SCHEMA)


def region_record_batches(region: Region, batch_size: int | None = None) -> Iterator[pa.RecordBatch]:
    """Ways first, in stream order, followed by the nodes."""
    batch_size = batch_size or BATCH_SIZE
    for ways in batched(region.ways, batch_size):
        yield record_batch_for_ways(list(ways))
    for nodes in batched(region.nodes.values(), batch_size):
        yield record_batch_for_nodes(list(nodes))


def write_region(region: Region, path: Path) -> None:
    schema = ARROW_ELEMENT_SCHEMA.with_metadata(
        {METADATA_NAME: region.name.encode("utf-8"), METADATA_VERSION: FORMAT_VERSION.encode("ascii")}
    )
    with pa.OSFile(str(path), "wb") as sink:
        with pa.ipc.new_file(sink, schema) as writer:
            for batch in region_record_batches(region):
                writer.write_batch(batch)


def _tags_from_items(items: Iterable[tuple[str, str]] | None) -> dict[str, str] | None:
    if items is None:
        return None
    return dict(items)


def _region_from_table(table: pa.Table, name: str) -> Region:
    kinds = table.column("kind").to_pylist()
    ids = table.column("id").to_pylist()
    tags = table.column("tags").to_pylist()
    latitudes = table.column("latitude").to_pylist()
    longitudes = table.column("longitude").to_pylist()
    refs = table.column("nodes").to_pylist()

    ways: list[OsmWay] = []
    nodes: dict[int, OsmNode] = {}
    for kind, id, tag_items, lat, lon, node_ids in zip(kinds, ids, tags, latitudes, longitudes, refs):
        if kind == KIND_WAY:
            if node_ids is None:
                raise CacheCorruptError(f"Way {id} has no node list")
            ways.append(OsmWay(id=id, nodes=node_ids, tags=_tags_from_items(tag_items) or {}))
        elif kind == KIND_NODE:
            if lat is None or lon is None:
                raise CacheCorruptError(f"Node {id} has no coordinates")
            nodes[id] = OsmNode(id=id, latitude=lat, longitude=lon, tags=_tags_from_items(tag_items))
        else:
            raise CacheCorruptError(f"Unknown element kind {kind!r}")

    return Region(name=name, ways=ways, nodes=nodes)


def read_region(path: Path) -> Region:
    """Decode a region written by :func:`write_region`.

    Missing files raise :class:`FileNotFoundError`; anything else that keeps
    the file from decoding raises :class:`CacheCorruptError`.
    """
    if not path.is_file():
        raise FileNotFoundError(f"No cache entry at {path}")

    try:
        with pa.OSFile(str(path), "rb") as source:
            reader = pa.ipc.open_file(source)
            metadata = reader.schema.metadata or {}
            if not reader.schema.remove_metadata().equals(ARROW_ELEMENT_SCHEMA):
                raise CacheCorruptError(f"Unexpected cache schema in {path}")
            version = metadata.get(METADATA_VERSION, b"").decode("ascii")
            if version != FORMAT_VERSION:
                raise CacheCorruptError(f"Unsupported cache format version {version!r} in {path}")
            name = metadata[METADATA_NAME].decode("utf-8")
            table = reader.read_all()
    except CacheCorruptError:
        raise
    except (pa.ArrowException, OSError, KeyError, ValueError) as e:
        raise CacheCorruptError(f"Cannot decode cache entry {path}: {e}") from e

    return _region_from_table(table, name)
