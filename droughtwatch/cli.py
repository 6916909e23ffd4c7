"""
Command line entry point: resolve a place, run the pipeline, print the result.

    droughtwatch --name "Marrakesh" --year 2023
    droughtwatch --lat 31.63 --lng -8.01 --start 2023-01-01 --end 2023-06-30
"""
from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import List, Optional

import pandas as pd

from droughtwatch.errors import DroughtWatchError
from droughtwatch.fetch.geocode import OpenMeteoGeocoder
from droughtwatch.fetch.open_meteo import OpenMeteoProvider
from droughtwatch.models import AnalysisResult, AnalysisWindow
from droughtwatch.pipeline.orchestrator import PipelineOrchestrator
from droughtwatch.transform.location import CoordinatePair, LocationInput, NameQuery
from droughtwatch.utils.config_loader import CFG, load_settings
from droughtwatch.utils.logging_utils import setup_logging_from_cfg

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Drought indicator analysis for one location")
    p.add_argument("--name", type=str, help="place name to geocode")
    p.add_argument("--country", type=str, help="country filter for --name")
    p.add_argument("--lat", type=float, help="latitude (with --lng)")
    p.add_argument("--lng", type=float, help="longitude (with --lat)")
    p.add_argument("--year", type=int, help="calendar year, 12 monthly periods")
    p.add_argument("--start", type=str, help="start date YYYY-MM-DD (overrides --year)")
    p.add_argument("--end", type=str, help="end date YYYY-MM-DD, inclusive")
    p.add_argument("--freq", type=str, default="M", choices=["M", "W", "D"], help="period size")
    args = p.parse_args(argv)
    if not args.name and (args.lat is None or args.lng is None):
        p.error("give either --name or both --lat and --lng")
    if bool(args.start) != bool(args.end):
        p.error("--start and --end go together")
    return args


def build_window(args: argparse.Namespace) -> AnalysisWindow:
    if args.start:
        return AnalysisWindow(date.fromisoformat(args.start), date.fromisoformat(args.end), args.freq)
    year = args.year or date.today().year - 1
    return AnalysisWindow.for_year(year, args.freq)


def build_query(args: argparse.Namespace) -> LocationInput:
    if args.name:
        return NameQuery(args.name, country=args.country)
    return CoordinatePair(args.lat, args.lng)


def render(result: AnalysisResult) -> str:
    df = result.to_frame()
    with pd.option_context("display.width", 160, "display.max_columns", 20, "display.float_format", "{:.3f}".format):
        table = df.to_string(na_rep="-")
    lines = [f"Location: {result.location.label()}", "", table, ""]
    if not result.hotspots:
        lines.append("No hotspots.")
    for h in result.hotspots:
        kinds = ", ".join(sorted(k.value for k in h.trigger_kinds)) or "-"
        region = f" [{h.region}]" if h.region else ""
        lines.append(f"Hotspot{region}: {h.start_period} → {h.end_period} peak={h.peak_value:.3f} triggers={kinds}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    run_id = setup_logging_from_cfg(CFG, app_name="droughtwatch")
    args = parse_args(argv)
    settings = load_settings(CFG)
    provider = OpenMeteoProvider.from_cfg(CFG, timeout=settings.fetch_timeout_s)
    geocoder = OpenMeteoGeocoder.from_cfg(CFG)

    with PipelineOrchestrator.from_settings(settings, provider, geocoder=geocoder) as orchestrator:
        try:
            result = orchestrator.analyze(build_query(args), build_window(args))
        except DroughtWatchError as exc:
            logger.error("status=failed run_id=%s kind=%s", run_id, exc.kind)
            print(f"Analysis failed ({exc.kind}): {exc.message}")
            return 1
    if result is None:
        return 1
    print(render(result))
    logger.info("status=ok run_id=%s", run_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
