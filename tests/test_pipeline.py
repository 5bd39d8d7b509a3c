from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest
from pbf_builder import encode_blob
from pbf_builder import pbf_bytes
from pbf_builder import railway_blocks
from pbf_builder import write_pbf

from osmrail.arrow import write_region
from osmrail.cache import RegionCache
from osmrail.config import RailmapConfig
from osmrail.errors import NetworkError
from osmrail.errors import SourceFormatError
from osmrail.extract import extract_file
from osmrail.pipeline import RegionOutcome
from osmrail.pipeline import format_report
from osmrail.pipeline import run_regions


@pytest.fixture
def fake_fetch(monkeypatch, config: RailmapConfig) -> Mock:
    """Writes the railway sample; ``switzerland`` fails to download, ``liechtenstein`` is corrupt."""

    def ensure_local_copy(data_url, checksum_url, local_path, session=None, progress=None):
        if "switzerland" in data_url:
            raise NetworkError(f"Failed to download {data_url}: connection refused")
        if "liechtenstein" in data_url:
            corrupt = pbf_bytes(*railway_blocks()) + encode_blob(b"\x0a\xff", compression="raw")
            Path(local_path).parent.mkdir(parents=True, exist_ok=True)
            Path(local_path).write_bytes(corrupt)
            return True
        write_pbf(Path(local_path), *railway_blocks())
        return True

    fetch = Mock(side_effect=ensure_local_copy)
    monkeypatch.setattr("osmrail.pipeline.ensure_local_copy", fetch)
    return fetch


@pytest.fixture
def counting_extract(monkeypatch) -> Mock:
    wrapped = Mock(wraps=extract_file)
    monkeypatch.setattr("osmrail.pipeline.extract_file", wrapped)
    return wrapped


def test_one_failing_region_does_not_stop_the_others(config: RailmapConfig, fake_fetch: Mock):
    outcomes = run_regions(["austria", "switzerland", "denmark"], config)

    assert [outcome.region for outcome in outcomes] == ["austria", "switzerland", "denmark"]
    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, NetworkError)
    assert outcomes[1].cache is None


def test_corrupt_extract_does_not_stop_the_others(config: RailmapConfig, fake_fetch: Mock):
    outcomes = run_regions(["liechtenstein", "austria"], config)

    assert [outcome.ok for outcome in outcomes] == [False, True]
    assert isinstance(outcomes[0].error, SourceFormatError)
    assert not config.cache_path("liechtenstein").exists()
    assert [way.id for way in outcomes[1].cache.restore().ways] == [100, 102, 104]


def test_failed_store_does_not_stop_the_others(config: RailmapConfig, fake_fetch: Mock, monkeypatch):
    def write_or_fail(region, path):
        if region.name == "denmark":
            raise OSError("No space left on device")
        write_region(region, path)

    monkeypatch.setattr("osmrail.cache.write_region", write_or_fail)

    outcomes = run_regions(["denmark", "austria"], config)

    assert [outcome.ok for outcome in outcomes] == [False, True]
    assert isinstance(outcomes[0].error, OSError)
    assert not config.cache_path("denmark").exists()
    assert outcomes[1].cache.exists()


def test_successful_regions_are_cached(config: RailmapConfig, fake_fetch: Mock):
    outcomes = run_regions(["austria"], config)

    region = outcomes[0].cache.restore()
    assert outcomes[0].cache.path == config.cache_path("austria")
    assert region.name == "austria"
    assert [way.id for way in region.ways] == [100, 102, 104]


def test_fetch_is_called_with_configured_urls(config: RailmapConfig, fake_fetch: Mock):
    run_regions(["austria"], config)

    args = fake_fetch.call_args.args
    assert args[0] == "https://extracts.example.org/europe/austria-latest.osm.pbf"
    assert args[1] == "https://extracts.example.org/europe/austria-latest.osm.pbf.md5"
    assert args[2] == config.source_path("austria")


def test_duplicate_regions_are_processed_once(config: RailmapConfig, fake_fetch: Mock):
    outcomes = run_regions(["austria", "denmark", "austria"], config)

    assert [outcome.region for outcome in outcomes] == ["austria", "denmark"]
    assert fake_fetch.call_count == 2


def test_second_run_reuses_cache(config: RailmapConfig, fake_fetch: Mock, counting_extract: Mock):
    run_regions(["austria"], config)
    run_regions(["austria"], config)

    assert counting_extract.call_count == 1
    assert fake_fetch.call_count == 2


def test_force_rebuilds_cache(config: RailmapConfig, fake_fetch: Mock, counting_extract: Mock):
    run_regions(["austria"], config)
    run_regions(["austria"], config, force=True)

    assert counting_extract.call_count == 2


def test_config_filter_is_used_by_default(config: RailmapConfig, fake_fetch: Mock):
    config.filter = {"railway": "rail", "usage": "main"}

    outcomes = run_regions(["denmark"], config)

    assert [way.id for way in outcomes[0].cache.restore().ways] == [102]


def test_failed_fetch_leaves_no_cache_entry(config: RailmapConfig, fake_fetch: Mock):
    run_regions(["switzerland"], config)

    assert not config.cache_path("switzerland").exists()


def test_format_report(tmp_path: Path):
    outcomes = [
        RegionOutcome(region="austria", cache=RegionCache(tmp_path / "austria.arrow")),
        RegionOutcome(region="switzerland", error=NetworkError("connection refused")),
    ]

    assert format_report(outcomes) == [
        f"austria: ok ({tmp_path / 'austria.arrow'})",
        "switzerland: failed (NetworkError: connection refused)",
    ]
