from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import as_completed
from contextlib import nullcontext
from dataclasses import dataclass
from functools import partial

import requests
from loguru import logger

from osmrail.cache import RegionCache
from osmrail.cache import load_or_build
from osmrail.config import RailmapConfig
from osmrail.extract import extract_file
from osmrail.fetch import TqdmProgress
from osmrail.fetch import ensure_local_copy
from osmrail.predicates import TagPredicate


@dataclass(frozen=True)
class RegionOutcome:
    region: str
    cache: RegionCache | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def process_region(
    region: str,
    config: RailmapConfig,
    predicate: TagPredicate,
    force: bool = False,
    session: requests.Session | None = None,
    progress: bool = False,
) -> RegionCache:
    """Fetch, extract and cache one region; the first failing stage ends it."""
    source_path = config.source_path(region)
    with TqdmProgress(source_path.name) if progress else nullcontext() as sink:
        ensure_local_copy(
            config.source_url(region),
            config.checksum_url(region),
            source_path,
            session=session,
            progress=sink,
        )

    rebuild = partial(
        extract_file,
        source_path,
        predicate,
        region,
        workers=config.extract_workers,
        progress=progress,
    )
    return load_or_build(config.cache_path(region), rebuild, force=force)


def run_regions(
    regions: Iterable[str],
    config: RailmapConfig,
    force: bool = False,
    predicate: TagPredicate | None = None,
    session: requests.Session | None = None,
    progress: bool = False,
) -> list[RegionOutcome]:
    """Run every region independently; one outcome per region, in request order."""
    regions = list(dict.fromkeys(regions))
    predicate = predicate or config.predicate()
    outcomes: dict[str, RegionOutcome] = {}

    with ThreadPoolExecutor(max_workers=config.region_workers) as executor:
        futures = {
            executor.submit(process_region, region, config, predicate, force, session, progress): region
            for region in regions
        }
        for future in as_completed(futures):
            region = futures[future]
            try:
                outcomes[region] = RegionOutcome(region=region, cache=future.result())
                logger.info(f"{region}: done")
            except Exception as e:
                logger.error(f"{region}: {type(e).__name__}: {e}")
                outcomes[region] = RegionOutcome(region=region, error=e)

    return [outcomes[region] for region in regions]


def format_report(outcomes: Iterable[RegionOutcome]) -> list[str]:
    lines = []
    for outcome in outcomes:
        if outcome.ok:
            lines.append(f"{outcome.region}: ok ({outcome.cache.path})")
        else:
            lines.append(f"{outcome.region}: failed ({type(outcome.error).__name__}: {outcome.error})")
    return lines
