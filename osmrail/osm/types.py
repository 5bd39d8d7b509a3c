from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field

OsmTags = dict[str, str]


@dataclass(frozen=True)
class OsmNode:
    id: int
    latitude: float
    longitude: float
    tags: OsmTags | None = None


@dataclass(frozen=True)
class OsmWay:
    id: int
    nodes: list[int]
    tags: OsmTags = field(default_factory=dict)


@dataclass(frozen=True)
class Region:
    """Retained ways of one extract plus every source node they reference.

    ``nodes`` only holds ids that were present in the source stream, so a way
    may reference ids that have no entry here.
    """

    name: str
    ways: list[OsmWay]
    nodes: dict[int, OsmNode]

    def required_node_ids(self) -> frozenset[int]:
        return frozenset(node_id for way in self.ways for node_id in way.nodes)

    def missing_node_ids(self) -> frozenset[int]:
        return self.required_node_ids().difference(self.nodes)
