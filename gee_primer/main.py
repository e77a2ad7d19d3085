"""
GEE Primer - Main Entry Point
Google Earth Engine lessons in Python

Commands:
1. list    Show the available lessons
2. run     Run one or more lessons against Earth Engine
3. status  Show the state of recent export tasks

Earth Engine does all raster work on its servers; the lessons build the
requests, print what they do and show the results.
"""
import argparse
import logging
import sys
from typing import List, Optional

from gee_primer.data.acquisition.exporter import ACTIVE_STATES, summarize_states, task_status_table
from gee_primer.lessons import LESSONS, LessonContext, get_lesson, run_lessons
from gee_primer.utils.geospatial import parse_bbox
from gee_primer.utils.initialization import initialize_earth_engine, initialize_project
from gee_primer.utils.logging import setup_logging_from_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gee-primer", description="Google Earth Engine lessons")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to configuration file (default: configs/config.yaml)")
    parser.add_argument("--project", type=str, default=None,
                        help="Cloud project registered for Earth Engine (overrides gee.project_name)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List the lessons")

    run_parser = subparsers.add_parser("run", help="Run lessons (all when none are named)")
    run_parser.add_argument("lessons", nargs="*", help="Lesson names or numbers, e.g. collections 3")
    run_parser.add_argument("--sensor", type=str, default=None, help="sentinel2, landsat8, landsat9 or landsat7")
    run_parser.add_argument("--start", type=str, default=None, help="Start date YYYY-MM-DD")
    run_parser.add_argument("--end", type=str, default=None, help="End date YYYY-MM-DD (exclusive)")
    run_parser.add_argument("--bbox", type=str, default=None, help="min_lon,min_lat,max_lon,max_lat")
    run_parser.add_argument("--max-cloud", type=float, default=None, help="Scene cloud cover threshold in percent")
    run_parser.add_argument("--export", action="store_true", help="Actually start export tasks in the export lesson")

    status_parser = subparsers.add_parser("status", help="Show export task status")
    status_parser.add_argument("--task-id", action="append", default=None, help="Only show this task (repeatable)")
    status_parser.add_argument("--limit", type=int, default=20)

    return parser


def apply_overrides(config: dict, args: argparse.Namespace) -> dict:
    """
    Copy command line overrides into the lessons/region config sections.
    """
    lessons = dict(config.get("lessons", {}) or {})
    region = dict(config.get("region", {}) or {})
    if getattr(args, "sensor", None):
        lessons["sensor"] = args.sensor
    if getattr(args, "start", None):
        lessons["start_date"] = args.start
    if getattr(args, "end", None):
        lessons["end_date"] = args.end
    if getattr(args, "max_cloud", None) is not None:
        lessons["max_cloud"] = args.max_cloud
    if getattr(args, "bbox", None):
        region["bbox"] = list(parse_bbox(args.bbox))
        region.pop("geojson", None)
    updated = dict(config)
    updated["lessons"] = lessons
    updated["region"] = region
    return updated


def print_lessons() -> None:
    print("Available lessons:")
    for number, (slug, module) in enumerate(LESSONS.items(), 1):
        print(f"  {number}. {slug:14} {module.TITLE}")
        print(f"     {module.SUMMARY}")


def show_status(task_ids: Optional[List[str]], limit: int) -> None:
    table = task_status_table(task_ids=task_ids, limit=limit)
    if table.empty:
        print("\nNo tasks found.")
        return

    print("\nTask Status:")
    print("-" * 70)
    for row in table.itertuples(index=False):
        print(f"  {row.state:10} | {row.id} | {str(row.description)[:50]}")
        if row.error:
            print(f"    Error: {str(row.error)[:100]}")
    print("-" * 70)

    counts = summarize_states(table)
    active = int(table["state"].isin(ACTIVE_STATES).sum())
    print("\nSummary:")
    print(f"  Completed: {counts['COMPLETED']}")
    print(f"  Active:    {active}")
    print(f"  Failed:    {counts['FAILED']}")
    print(f"  Cancelled: {counts['CANCELLED']}")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the lessons.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "list":
        print_lessons()
        return 0

    if args.command == "run":
        try:
            for key in args.lessons:
                get_lesson(key)
        except ValueError as e:
            parser.error(str(e))

    try:
        config, project_root, maps_dir = initialize_project(args.config)
        setup_logging_from_config(config, project_root)
        config = apply_overrides(config, args)
        initialize_earth_engine(config, args.project)

        if args.command == "status":
            show_status(args.task_id, args.limit)
            return 0

        download_dir = project_root / config.get("output", {}).get("downloads", "output/downloads")
        ctx = LessonContext.from_config(
            config, output_dir=maps_dir, export=args.export, download_dir=download_dir
        )
        run_lessons(args.lessons, ctx)
    except Exception as e:
        logger.exception("gee-primer %s failed", args.command)
        print(f"\n[ERROR] {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print("\nDone.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
