from __future__ import annotations

import argparse
import sys

from loguru import logger

from osmrail.config import RailmapConfig
from osmrail.errors import ConfigError
from osmrail.pipeline import format_report
from osmrail.pipeline import run_regions


def setup_logging(verbose: bool = False) -> None:
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level,
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract railway ways and nodes from OSM PBF extracts")
    parser.add_argument("--config", type=str, default="config.yaml", help="Path to the YAML configuration")
    parser.add_argument(
        "--group",
        type=str,
        action="append",
        dest="groups",
        help="Region group to process, may be repeated (default: all groups)",
    )
    parser.add_argument("--force", action="store_true", help="Rebuild cache entries even if present")
    parser.add_argument("--progress", action="store_true", help="Show progress bars while extracting")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = RailmapConfig.from_yaml(args.config)
        regions = config.regions_for(args.groups)
    except (ConfigError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.info(f"Processing {len(regions)} regions")
    outcomes = run_regions(regions, config, force=args.force, progress=args.progress)
    for line in format_report(outcomes):
        print(line)

    return 0 if all(outcome.ok for outcome in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
