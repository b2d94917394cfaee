"""
Ride Trip Summary - daily summary refresh and reporting over ride-hailing trip requests
"""
from trip_summary.aggregator import DailyAggregator, compute_daily_summaries
from trip_summary.models import DailySummary, PickupPoint, TripRequest

__version__ = '0.1.0'

__all__ = [
    'DailyAggregator',
    'DailySummary',
    'PickupPoint',
    'TripRequest',
    'compute_daily_summaries',
]
