"""Per-region cache of extracted data.

An entry is identified by its path alone. Nothing about the fetched source is
recorded, so an existing entry is reused even when the source extract has
been replaced since it was written; pass ``force=True`` to rebuild.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from osmrail.arrow import read_region
from osmrail.arrow import write_region
from osmrail.osm.types import Region

CACHE_SUFFIX = ".arrow"


def cache_path(cache_dir: Path, region: str) -> Path:
    return Path(cache_dir) / f"{region}{CACHE_SUFFIX}"


@dataclass(frozen=True)
class RegionCache:
    """Handle to a stored region; decoding only happens in :meth:`restore`."""

    path: Path

    def exists(self) -> bool:
        return self.path.is_file()

    def restore(self) -> Region:
        logger.debug(f"Restoring region from {self.path}")
        return read_region(self.path)


def store(region: Region, path: Path) -> RegionCache:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        write_region(region, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info(f"Stored {region.name} ({len(region.ways)} ways, {len(region.nodes)} nodes) in {path}")
    return RegionCache(path)


def load_or_build(path: Path, rebuild: Callable[[], Region], force: bool = False) -> RegionCache:
    handle = RegionCache(Path(path))
    if handle.exists() and not force:
        logger.info(f"Using cached {handle.path}")
        return handle

    reason = "forced rebuild" if handle.exists() else "no cache entry"
    logger.info(f"Building {handle.path} ({reason})")
    return store(rebuild(), handle.path)
