"""
Ride Trip Summary - Daily Summary Refresh Lambda
Recomputes the daily summary table on demand or on a schedule
"""
import json
import logging
import uuid

from trip_summary.config import Settings
from trip_summary.errors import categorize_error, handle_categorized_error
from trip_summary.handlers import build_aggregator
from trip_summary.models import convert_decimals

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def lambda_handler(event, context):
    """
    Refresh the daily summary from every trip request
    """
    settings = Settings.from_env()
    logger.setLevel(settings.log_level)

    correlation_id = (event or {}).get('correlation_id') or str(uuid.uuid4())
    logger.info(f"[{correlation_id}] Daily summary refresh requested")

    try:
        summaries = build_aggregator(settings).refresh(correlation_id)
    except Exception as e:
        error_details = handle_categorized_error(e, categorize_error(e), correlation_id)
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Daily summary refresh failed; previous summary left in place',
                'error': error_details
            })
        }

    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': f'Successfully refreshed {len(summaries)} daily summaries',
            'summary_count': len(summaries),
            'summaries': convert_decimals([summary.to_dict() for summary in summaries]),
            'correlation_id': correlation_id
        })
    }
