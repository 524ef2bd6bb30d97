#!/usr/bin/env python3
"""
ridemetrics - command line entry point.

Analyzes one or more GPX rides and prints the summary, calorie estimate and
climb/descent segments, or the full result as JSON.

The heavy lifting lives in the ridemetrics package; this module only wires
configuration, logging and output together.
"""

import argparse
import json
import sys
from pathlib import Path

from ridemetrics.config.config import ConfigManager
from ridemetrics.config.logging_config import setup_logging, log_error
from ridemetrics.errors import RouteAnalysisError
from ridemetrics.processing.route_processor import RouteProcessor
from ridemetrics.utils.units import UnitConverter


def print_report(path: Path, result, imperial: bool = False) -> None:
    summary = result.summary
    analysis = result.analysis
    units = UnitConverter

    print(f"\n{path}")
    print(f"  points         : {result.total_points}")
    print(f"  distance       : {units.format_distance(summary.distance_km, imperial)}")
    print(f"  total time     : {units.format_duration(summary.total_time_s)}")
    print(f"  moving time    : {units.format_duration(summary.moving_time_s)}")
    print(f"  avg speed      : {units.format_speed(summary.avg_speed_kmh, imperial)}")
    print(f"  max speed      : {units.format_speed(summary.max_speed_kmh, imperial)}")
    print(f"  elevation gain : {units.format_elevation(summary.elevation_gain_m, imperial)}")
    print(f"  elevation loss : {units.format_elevation(summary.elevation_loss_m, imperial)}")
    print(f"  calories       : {analysis.calories.estimated} kcal ({analysis.calories.method})")

    for segment in result.segments:
        print(f"  {segment.type.value:<8} {units.format_distance(segment.distance / 1000, imperial):>10} "
              f"avg {segment.avg_gradient:5.1f}%  max {segment.max_gradient:5.1f}%")

    if result.terrain is not None:
        print(f"  terrain        : {result.terrain.dominant_terrain.value} ({result.terrain.source})")


def main() -> int:
    ap = argparse.ArgumentParser(description="ridemetrics: analyze GPX ride file(s).")
    ap.add_argument("gpx", nargs="+", help="One or more GPX files.")
    ap.add_argument("--terrain", action="store_true",
                    help="Also classify terrain (queries the Overpass API unless disabled).")
    ap.add_argument("--rider-weight", type=float, default=None, help="Rider weight in kg.")
    ap.add_argument("--json", action="store_true", help="Print the full result as JSON.")
    ap.add_argument("--imperial", action="store_true", help="Report miles, feet and mph.")
    args = ap.parse_args()

    manager = ConfigManager()
    logger = setup_logging(
        log_level=manager.app.log_level,
        log_to_file=manager.app.log_to_file,
        log_dir=manager.app.log_directory,
    )
    processor = RouteProcessor(manager.config)

    exit_code = 0
    for name in args.gpx:
        path = Path(name)
        if not path.is_file():
            print(f"Skipping (not a file): {path}")
            exit_code = 1
            continue

        try:
            result = processor.analyze_gpx(
                path.read_text(encoding="utf-8"),
                rider_weight_kg=args.rider_weight,
                include_terrain=args.terrain,
            )
        except (RouteAnalysisError, UnicodeDecodeError) as e:
            log_error(logger, e, f"Failed to analyze {path}")
            exit_code = 1
            continue

        if args.json:
            print(json.dumps(result.to_dict(), indent=2, default=str))
        else:
            print_report(path, result, imperial=args.imperial)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
