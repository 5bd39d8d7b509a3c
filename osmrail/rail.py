from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from osmrail.osm.types import OsmNode
from osmrail.osm.types import OsmWay
from osmrail.osm.types import Region

Coordinate = tuple[float, float]

_SPEED_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(mph|knots|km/h|kmh)?$")


class SpeedUnit(Enum):
    KILOMETERS_PER_HOUR = "km/h"
    MILES_PER_HOUR = "mph"
    KNOTS = "knots"


@dataclass(frozen=True)
class MaxSpeed:
    value: float
    unit: SpeedUnit = SpeedUnit.KILOMETERS_PER_HOUR

    def kmh(self) -> float:
        match self.unit:
            case SpeedUnit.MILES_PER_HOUR:
                return self.value * 1.609344
            case SpeedUnit.KNOTS:
                return self.value * 1.852
            case _:
                return self.value


def parse_maxspeed(text: str) -> MaxSpeed | None:
    text = text.strip()
    if text in ("", "none"):
        return None

    match = _SPEED_PATTERN.match(text)
    if match is None:
        raise ValueError(f"Cannot parse speed from {text!r}")

    value, unit = match.groups()
    if unit in (None, "km/h", "kmh"):
        return MaxSpeed(float(value))
    return MaxSpeed(float(value), SpeedUnit(unit))


@dataclass(frozen=True)
class Rail:
    id: int
    name: str | None
    maxspeed: MaxSpeed | None
    geometry: list[Coordinate | None]

    @classmethod
    def from_way(cls, way: OsmWay, nodes: dict[int, OsmNode]) -> Rail:
        """Resolve the way's node ids to ``(lon, lat)``; ids without a node become None."""
        try:
            maxspeed = parse_maxspeed(way.tags.get("maxspeed", ""))
        except ValueError as e:
            logger.warning(f"Way {way.id}: {e}")
            maxspeed = None

        geometry: list[Coordinate | None] = []
        for node_id in way.nodes:
            node = nodes.get(node_id)
            geometry.append(None if node is None else (node.longitude, node.latitude))

        return cls(id=way.id, name=way.tags.get("name"), maxspeed=maxspeed, geometry=geometry)

    def segments(self) -> list[list[Coordinate]]:
        """Runs of consecutive known coordinates; missing nodes split the line."""
        segments: list[list[Coordinate]] = []
        current: list[Coordinate] = []
        for coordinate in self.geometry:
            if coordinate is None:
                if current:
                    segments.append(current)
                current = []
            else:
                current.append(coordinate)
        if current:
            segments.append(current)
        return segments


def rails(region: Region) -> list[Rail]:
    return [Rail.from_way(way, region.nodes) for way in region.ways]


def region_bounds(region: Region) -> tuple[float, float, float, float] | None:
    """``(min_lon, min_lat, max_lon, max_lat)`` of the region's nodes."""
    if not region.nodes:
        return None
    longitudes = [node.longitude for node in region.nodes.values()]
    latitudes = [node.latitude for node in region.nodes.values()]
    return min(longitudes), min(latitudes), max(longitudes), max(latitudes)
