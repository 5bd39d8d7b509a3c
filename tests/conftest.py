from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger
from pbf_builder import railway_blocks
from pbf_builder import write_pbf

from osmrail.config import RailmapConfig
from osmrail.osm.types import OsmNode
from osmrail.osm.types import OsmWay
from osmrail.osm.types import Region


@pytest.fixture(autouse=True)
def quiet_logger():
    logger.remove()
    yield


@pytest.fixture
def railway_pbf(tmp_path: Path) -> Path:
    return write_pbf(tmp_path / "railway.osm.pbf", *railway_blocks())


@pytest.fixture
def sample_region() -> Region:
    return Region(
        name="sample",
        ways=[
            OsmWay(id=10, nodes=[1, 2, 3], tags={"railway": "rail", "name": "Westbahn"}),
            OsmWay(id=11, nodes=[3, 4, 42], tags={"railway": "rail"}),
        ],
        nodes={
            1: OsmNode(id=1, latitude=48.2, longitude=16.3),
            2: OsmNode(id=2, latitude=48.25, longitude=16.1, tags={"railway": "switch"}),
            3: OsmNode(id=3, latitude=48.3, longitude=15.9),
            4: OsmNode(id=4, latitude=48.1, longitude=15.6),
        },
    )


@pytest.fixture
def config(tmp_path: Path) -> RailmapConfig:
    return RailmapConfig(
        server_url="https://extracts.example.org/",
        regions={"alps": ["austria", "switzerland"], "north": ["denmark", "austria"]},
        assets_dir=tmp_path / "assets",
        cache_dir=tmp_path / "cache",
        region_workers=2,
        extract_workers=1,
    )
