"""
Command line interface for Ride Trip Summary
"""
import argparse
import json
import logging
import sys
from dataclasses import replace

from botocore.exceptions import BotoCoreError, ClientError

from trip_summary.config import Settings
from trip_summary.errors import TripSummaryError, categorize_error
from trip_summary.handlers import build_aggregator
from trip_summary.ingest import CSVTripLoader, read_extract
from trip_summary.models import convert_decimals
from trip_summary.quality import run_quality_checks
from trip_summary.reports import REPORTS, run_report, trip_frame
from trip_summary.storage import DailySummaryStore, TripRepository, dynamodb_resource
from trip_summary.storage.tables import create_tables

logger = logging.getLogger(__name__)


def _print_json(payload):
    print(json.dumps(convert_decimals(payload), indent=2, default=str))


def _trip_frame(args, settings: Settings):
    if args.csv:
        return trip_frame(read_extract(args.csv).to_dict('records'))
    repository = TripRepository(dynamodb_resource(settings), settings.trip_table_name)
    return trip_frame(repository.scan_items())


def cmd_init_tables(args, settings: Settings) -> int:
    create_tables(dynamodb_resource(settings), settings)
    return 0


def cmd_load_csv(args, settings: Settings) -> int:
    repository = TripRepository(dynamodb_resource(settings), settings.trip_table_name)
    loader = CSVTripLoader(
        repository,
        invalid_data_bucket=settings.invalid_data_bucket,
        region=settings.region,
        max_duration_minutes=settings.max_trip_duration_minutes,
    )
    _print_json(loader.load(args.path))
    return 0


def cmd_refresh(args, settings: Settings) -> int:
    summaries = build_aggregator(settings).refresh()
    _print_json([summary.to_dict() for summary in summaries])
    return 0


def cmd_show_summary(args, settings: Settings) -> int:
    store = DailySummaryStore(dynamodb_resource(settings), settings.summary_table_name)
    _print_json([summary.to_dict() for summary in store.read_all()])
    return 0


def cmd_report(args, settings: Settings) -> int:
    params = {}
    if args.name == 'driver_activity':
        if args.driver_id is None:
            logger.error("driver_activity needs --driver-id")
            return 2
        params['driver_id'] = args.driver_id
    if args.name == 'most_active_drivers':
        params['limit'] = args.limit

    result = run_report(args.name, _trip_frame(args, settings), **params)
    if isinstance(result, int):
        print(result)
    else:
        print(result.to_string(index=False))
    return 0


def cmd_quality(args, settings: Settings) -> int:
    report = run_quality_checks(_trip_frame(args, settings), settings.max_trip_duration_minutes)
    _print_json(report.to_dict())
    return 1 if (args.strict and report.has_issues) else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Ride trip request analysis and daily summary refresh')
    parser.add_argument('--region', help='AWS region (overrides AWS_REGION)')
    parser.add_argument('--log-level', help='Logging level (overrides LOG_LEVEL)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    init = subparsers.add_parser('init-tables', help='Create the trip and summary tables')
    init.set_defaults(func=cmd_init_tables)

    load = subparsers.add_parser('load-csv', help='Validate and load a trip request CSV extract')
    load.add_argument('path', help='Path to the request CSV file')
    load.set_defaults(func=cmd_load_csv)

    refresh = subparsers.add_parser('refresh', help='Recompute the daily summary table')
    refresh.set_defaults(func=cmd_refresh)

    show = subparsers.add_parser('show-summary', help='Print the materialised daily summary')
    show.set_defaults(func=cmd_show_summary)

    report = subparsers.add_parser('report', help='Run a reporting query')
    report.add_argument('name', choices=sorted(REPORTS), help='Report to run')
    report.add_argument('--csv', help='Read trips from a CSV extract instead of the trip table')
    report.add_argument('--driver-id', type=int, help='Driver for driver_activity')
    report.add_argument('--limit', type=int, default=10, help='Rows for most_active_drivers')
    report.set_defaults(func=cmd_report)

    quality = subparsers.add_parser('quality', help='Run data-quality checks')
    quality.add_argument('--csv', help='Check a CSV extract instead of the trip table')
    quality.add_argument('--strict', action='store_true', help='Exit 1 when any issue is found')
    quality.set_defaults(func=cmd_quality)

    return parser


def main(argv=None) -> int:
    """Command line interface for the trip summary tools"""
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    overrides = {}
    if args.region:
        overrides['region'] = args.region
    if args.log_level:
        overrides['log_level'] = args.log_level.upper()
    if overrides:
        settings = replace(settings, **overrides)

    logging.basicConfig(level=settings.log_level,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        return args.func(args, settings)
    except (TripSummaryError, ClientError, BotoCoreError) as e:
        logger.error(f"❌ {type(e).__name__} [{categorize_error(e)}]: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
