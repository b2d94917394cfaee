"""
Ride Trip Summary - Reporting Lambda
Serves read-only reports, the materialised daily summary and quality checks
"""
import json
import logging
import uuid

from trip_summary.config import Settings
from trip_summary.errors import categorize_error, handle_categorized_error
from trip_summary.models import convert_decimals
from trip_summary.quality import run_quality_checks
from trip_summary.reports import frame_to_records, run_report, trip_frame
from trip_summary.storage import DailySummaryStore, TripRepository, dynamodb_resource

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def lambda_handler(event, context):
    """
    event: {"report": "<name>" | "daily_summary" | "quality", "params": {...}}
    """
    settings = Settings.from_env()
    event = event or {}
    report_name = event.get('report', 'daily_summary')
    params = event.get('params') or {}
    correlation_id = event.get('correlation_id') or str(uuid.uuid4())

    logger.info(f"[{correlation_id}] Report requested: {report_name}")

    try:
        dynamodb = dynamodb_resource(settings)
        if report_name == 'daily_summary':
            store = DailySummaryStore(dynamodb, settings.summary_table_name)
            result = [summary.to_dict() for summary in store.read_all()]
        else:
            frame = trip_frame(TripRepository(dynamodb, settings.trip_table_name).scan_items())
            if report_name == 'quality':
                result = run_quality_checks(
                    frame, settings.max_trip_duration_minutes, correlation_id
                ).to_dict()
            else:
                output = run_report(report_name, frame, **params)
                result = output if isinstance(output, int) else frame_to_records(output)
    except Exception as e:
        error_details = handle_categorized_error(e, categorize_error(e), correlation_id)
        status_code = 400 if isinstance(e, (ValueError, TypeError)) else 500
        return {
            'statusCode': status_code,
            'body': json.dumps({'message': f'Report {report_name} failed', 'error': error_details})
        }

    return {
        'statusCode': 200,
        'body': json.dumps({
            'report': report_name,
            'result': convert_decimals(result),
            'correlation_id': correlation_id
        }, default=str)
    }
