from __future__ import annotations

from collections.abc import Container
from collections.abc import Generator
from collections.abc import Iterable
from collections.abc import Sequence

from osmrail.errors import SourceFormatError
from osmrail.osm.types import OsmNode
from osmrail.osm.types import OsmTags
from osmrail.osm.types import OsmWay
from osmrail.protos.osmformat_pb2 import DenseNodes
from osmrail.protos.osmformat_pb2 import Node
from osmrail.protos.osmformat_pb2 import PrimitiveBlock
from osmrail.protos.osmformat_pb2 import Way


def delta_decode(values: Iterable[int]) -> Generator[int, None, None]:
    current = 0
    for value in values:
        current += value
        yield current


class ValueDecoder:
    def __init__(self, block: PrimitiveBlock) -> None:
        self.granularity = block.granularity
        self.lat_offset = block.lat_offset
        self.lon_offset = block.lon_offset

    def lat(self, value: int) -> float:
        return 0.000000001 * (self.lat_offset + (self.granularity * value))

    def lon(self, value: int) -> float:
        return 0.000000001 * (self.lon_offset + (self.granularity * value))


class PrimitiveBlockDecoder:
    def __init__(self, block: PrimitiveBlock) -> None:
        self.block = block
        self.string_table = [s.decode("utf-8") for s in block.stringtable.s]
        self.value_decoder = ValueDecoder(block)

    def decode_string(self, index: int) -> str:
        try:
            return self.string_table[index]
        except IndexError:
            raise SourceFormatError(f"String index {index} outside of string table") from None

    def decode_tags(self, keys: Sequence[int], vals: Sequence[int]) -> OsmTags:
        if len(keys) != len(vals):
            raise SourceFormatError(f"Mismatched tag arrays: {len(keys)} keys, {len(vals)} values")
        return {self.decode_string(key): self.decode_string(val) for key, val in zip(keys, vals)}

    def decode_node(self, node: Node) -> OsmNode:
        return OsmNode(
            id=node.id,
            latitude=self.value_decoder.lat(node.lat),
            longitude=self.value_decoder.lon(node.lon),
            tags=self.decode_tags(node.keys, node.vals) or None,
        )

    def decode_dense_tags(self, keys_vals: Sequence[int], count: int) -> Generator[OsmTags, None, None]:
        # An empty keys_vals array means none of the nodes carry tags.
        if not keys_vals:
            for _ in range(count):
                yield {}
            return

        i = 0
        tags: OsmTags = {}
        while i < len(keys_vals):
            if keys_vals[i] == 0:
                yield tags
                tags = {}
                i += 1
            elif i + 1 < len(keys_vals):
                tags[self.decode_string(keys_vals[i])] = self.decode_string(keys_vals[i + 1])
                i += 2
            else:
                raise SourceFormatError("Dense node tags end in the middle of a key/value pair")

        if tags:
            raise SourceFormatError("Dense node tags are not zero terminated")

    def decode_dense_nodes(
        self, dense: DenseNodes, wanted: Container[int] | None = None
    ) -> Generator[OsmNode, None, None]:
        count = len(dense.id)
        if len(dense.lat) != count or len(dense.lon) != count:
            raise SourceFormatError("Dense node id, lat and lon arrays differ in length")

        tags_list = list(self.decode_dense_tags(dense.keys_vals, count))
        if len(tags_list) != count:
            raise SourceFormatError(f"Dense nodes carry {len(tags_list)} tag groups for {count} nodes")

        for id, tags, lat, lon in zip(
            delta_decode(dense.id),
            tags_list,
            delta_decode(dense.lat),
            delta_decode(dense.lon),
        ):
            if wanted is not None and id not in wanted:
                continue
            yield OsmNode(
                id=id,
                latitude=self.value_decoder.lat(lat),
                longitude=self.value_decoder.lon(lon),
                tags=tags or None,
            )

    def decode_way(self, way: Way) -> OsmWay:
        return OsmWay(
            id=way.id,
            nodes=list(delta_decode(way.refs)),
            tags=self.decode_tags(way.keys, way.vals),
        )


def decode_ways(block: PrimitiveBlock) -> Generator[OsmWay, None, None]:
    decoder = PrimitiveBlockDecoder(block)
    for group in block.primitivegroup:
        for way in group.ways:
            yield decoder.decode_way(way)


def decode_nodes(block: PrimitiveBlock, wanted: Container[int] | None = None) -> Generator[OsmNode, None, None]:
    """Decode plain and dense nodes, optionally limited to the ids in ``wanted``."""
    decoder = PrimitiveBlockDecoder(block)
    for group in block.primitivegroup:
        for node in group.nodes:
            if wanted is None or node.id in wanted:
                yield decoder.decode_node(node)

        if group.HasField("dense"):
            yield from decoder.decode_dense_nodes(group.dense, wanted)
