"""Configuration of an osmrail run.

Loaded from YAML by the command line and passed to the pipeline as a value::

    server_url: https://download.geofabrik.de
    area: europe
    suffix: -latest
    regions:
      dach: [germany, austria, switzerland]
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

import yaml

from osmrail.cache import cache_path
from osmrail.errors import ConfigError
from osmrail.predicates import TagPredicate
from osmrail.predicates import predicate_from_tags


@dataclass
class RailmapConfig:
    server_url: str
    regions: dict[str, list[str]]
    area: str = "europe"
    suffix: str = "-latest"
    assets_dir: Path = Path("assets")
    cache_dir: Path = Path("cache")
    region_workers: int = 2
    extract_workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    filter: dict[str, str | None] = field(default_factory=lambda: {"railway": "rail"})

    def __post_init__(self) -> None:
        self.server_url = self.server_url.rstrip("/")
        self.assets_dir = Path(self.assets_dir)
        self.cache_dir = Path(self.cache_dir)
        if self.region_workers < 1 or self.extract_workers < 1:
            raise ConfigError("Worker counts must be at least 1")
        if not self.filter:
            raise ConfigError("The way filter needs at least one tag")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RailmapConfig:
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")
        if "server_url" not in data:
            raise ConfigError("Configuration is missing 'server_url'")

        regions = data.get("regions") or {}
        if not isinstance(regions, dict) or not all(isinstance(names, list) for names in regions.values()):
            raise ConfigError("'regions' must map group names to lists of region names")

        known = {name for name in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = dict(data)
        values["regions"] = {str(group): [str(name) for name in names] for group, names in regions.items()}
        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RailmapConfig:
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {yaml_path}: {e}") from e
        return cls.from_dict(data)

    def regions_for(self, groups: Iterable[str] | None = None) -> list[str]:
        """Region names of ``groups`` (all groups when None), without duplicates."""
        groups = list(self.regions) if groups is None else list(groups)
        names: list[str] = []
        for group in groups:
            if group not in self.regions:
                raise ConfigError(f"Unknown region group {group!r}")
            for name in self.regions[group]:
                if name not in names:
                    names.append(name)
        return names

    def predicate(self) -> TagPredicate:
        return predicate_from_tags(self.filter)

    def source_url(self, region: str) -> str:
        return f"{self.server_url}/{self.area}/{region}{self.suffix}.osm.pbf"

    def checksum_url(self, region: str) -> str:
        return f"{self.source_url(region)}.md5"

    def source_path(self, region: str) -> Path:
        return self.assets_dir / f"{region}{self.suffix}.osm.pbf"

    def cache_path(self, region: str) -> Path:
        return cache_path(self.cache_dir, region)
