"""
Lambda entry points
"""
from trip_summary.aggregator import DailyAggregator
from trip_summary.config import Settings
from trip_summary.storage import DailySummaryStore, TripRepository, dynamodb_resource


def build_aggregator(settings: Settings) -> DailyAggregator:
    dynamodb = dynamodb_resource(settings)
    return DailyAggregator(
        TripRepository(dynamodb, settings.trip_table_name),
        DailySummaryStore(dynamodb, settings.summary_table_name),
        settings,
    )
