"""
Dashboard Report Script

Produces the card counts and detail table of one metric dashboard from a
sheet on disk, with the same filters the web dashboard offers.

Report Stages:
1. Load & validate - read the sensor sheet (and optional scheme sheet)
2. Filter - apply geographic, status and search filters
3. Aggregate - compute card counts and the optional regional rollup
4. Select & page - narrow to one card and print one page of rows
5. Scheme summary - when a scheme sheet is given, its status cards under the same filters
6. Export - optionally write the detail table to CSV/Excel

Usage:
    python src/run_report.py --kind chlorine --input dataset/chlorine.xlsx \\
        --region Nagpur --bucket below_0.2 --export nagpur_low.xlsx
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from aggregation import aggregate_by_level, scheme_summary, scheme_summary_by_level
from config import GEO_LEVELS, get_profile, load_profile_from_json, settings
from dashboard import DashboardSnapshot, DashboardView
from data_loading import join_scheme_status, load_records
from hierarchy_filter import FilterState
from pagination import Paginator
from record_schema import get_record_kind

logger = logging.getLogger(__name__)


def configure_logging(level: str = settings.log_level, log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def parse_status_filters(values: List[str]) -> Dict[str, str]:
    """
    Parse repeated NAME=VALUE arguments.

    Raises:
        ValueError: If an argument has no '='
    """
    filters = {}
    for item in values or []:
        if '=' not in item:
            raise ValueError(f"Status filter must be NAME=VALUE, got: {item}")
        name, value = item.split('=', 1)
        filters[name.strip()] = value.strip()
    return filters


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Card counts and detail table for a sensor dashboard")
    parser.add_argument('--kind', required=True, choices=['chlorine', 'pressure', 'lpcd'],
                        help="Record kind / metric dashboard")
    parser.add_argument('--input', required=True, help="CSV or Excel sheet of sensor records")
    parser.add_argument('--schemes', help="Scheme status sheet to join status fields from and summarise")
    parser.add_argument('--profile-json', help="JSON bucket table replacing the built-in profile")

    for level in GEO_LEVELS:
        parser.add_argument(f'--{level.replace("_", "-")}', dest=level, help=f"Filter by {level}")

    parser.add_argument('--status', action='append', default=[], metavar='NAME=VALUE',
                        help="Status filter, repeatable (e.g. mjp_commissioned=Yes)")
    parser.add_argument('--search', default='', help="Free-text search over scheme/village/ESR names")
    parser.add_argument('--bucket', default='all', help="Card to show in the detail table")
    parser.add_argument('--rollup', choices=list(GEO_LEVELS), help="Print card counts per value of this level")
    parser.add_argument('--page', type=int, default=1)
    parser.add_argument('--page-size', type=int, default=settings.page_size)
    parser.add_argument('--export', help="Write the detail table to this .csv/.xlsx path (bare file names go to the output directory)")
    parser.add_argument('--log-file', help="Also write logs to this file")
    return parser


def log_snapshot(snapshot: DashboardSnapshot, rollup: Optional[pd.DataFrame] = None) -> None:
    logger.info("=" * 80)
    logger.info(f"FILTERS: {snapshot.filters['levels']} status={snapshot.filters['status']}")
    logger.info(f"Current level: {snapshot.level}")
    logger.info("=" * 80)

    for name, count in snapshot.counts.items():
        logger.info(f"  {name:30s} {count:>8,}")

    if rollup is not None and not rollup.empty:
        logger.info("\nRollup:\n" + rollup.to_string(index=False))

    page = snapshot.page
    logger.info(
        f"\nDetail table ({snapshot.filters['range_bucket']}): page {page.page}/{max(page.total_pages, 1)}, "
        f"rows {page.first_item}-{page.last_item} of {page.total_items:,}"
    )
    if len(page.items):
        shown = [c for c in ('scheme_id', 'village_name', 'esr_name', 'latest_value', 'latest_date', 'status_label')
                 if c in page.items.columns]
        logger.info("\n" + page.items[shown].to_string(index=False))


def log_scheme_summary(summary: Dict[str, float], by_level: Optional[pd.DataFrame] = None) -> None:
    logger.info("=" * 80)
    logger.info("SCHEME SUMMARY")
    logger.info("=" * 80)

    for name, value in summary.items():
        if name.endswith('_pct'):
            logger.info(f"  {name:40s} {value:>7.1f}%")
        else:
            logger.info(f"  {name:40s} {value:>8,}")

    if by_level is not None and not by_level.empty:
        logger.info("\nScheme rollup:\n" + by_level.to_string(index=False))


def resolve_output_path(path: str, output_dir: str = settings.output_dir) -> Path:
    """
    Place a bare export file name under the output directory.

    Paths with a directory part (relative or absolute) are used as given.

    Example:
        >>> resolve_output_path('nagpur.xlsx', 'data_cache')
        PosixPath('data_cache/nagpur.xlsx')
    """
    output_path = Path(path)
    if output_path.parent == Path('.') and not output_path.is_absolute():
        return Path(output_dir) / output_path
    return output_path


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one dashboard report.

    Returns:
        int: Exit code (0 = success, 1 = failure)
    """
    args = build_parser().parse_args(argv)
    configure_logging(log_file=args.log_file)

    start_time = time.time()
    logger.info("=" * 80)
    logger.info(f"AQUAWATCH {args.kind.upper()} REPORT")
    logger.info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 80)

    try:
        profile_name = get_record_kind(args.kind).profile_name
        profile = load_profile_from_json(args.profile_json, profile_name) if args.profile_json else get_profile(profile_name)

        records = load_records(args.input, args.kind)
        schemes = None
        if args.schemes:
            schemes = load_records(args.schemes, 'scheme')
            records = join_scheme_status(records, schemes)

        state = FilterState()
        for level in GEO_LEVELS:
            value = getattr(args, level)
            if value:
                state.set_level(level, value)
        for name, value in parse_status_filters(args.status).items():
            forced = state.set_status_filter(name, value)
            for field_name, forced_value in forced:
                logger.warning(f"⚠️  {field_name} set to '{forced_value}' to stay compatible with {name}={value}")
        state.set_search(args.search)
        state.select_bucket(args.bucket)

        paginator = Paginator(args.page_size)
        paginator.set_page(args.page)

        view = DashboardView(records, profile, filter_state=state, paginator=paginator)
        snapshot = view.snapshot()

        rollup = aggregate_by_level(view.filtered_records(), profile, args.rollup) if args.rollup else None
        log_snapshot(snapshot, rollup)

        if schemes is not None:
            scheme_rows = state.apply(schemes)
            log_scheme_summary(
                scheme_summary(scheme_rows),
                scheme_summary_by_level(scheme_rows, args.rollup) if args.rollup else None,
            )

        if args.export:
            view.export(str(resolve_output_path(args.export)))

        elapsed = time.time() - start_time
        logger.info(f"\n✅ Report complete in {elapsed:.2f}s")
        return 0

    except KeyboardInterrupt:
        logger.warning("\n⚠️  Report interrupted by user (Ctrl+C)")
        return 130

    except Exception as e:
        logger.error(f"❌ REPORT FAILED: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
