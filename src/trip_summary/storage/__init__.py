"""
Ride Trip Summary - DynamoDB persistence
"""
import boto3

from trip_summary.config import Settings
from trip_summary.storage.summary import DailySummaryStore
from trip_summary.storage.trips import TripRepository

__all__ = ['DailySummaryStore', 'TripRepository', 'dynamodb_resource']


def dynamodb_resource(settings: Settings):
    """Create a DynamoDB resource on its own session so threads never share one"""
    session = boto3.session.Session(region_name=settings.region)
    return session.resource('dynamodb', endpoint_url=settings.dynamodb_endpoint_url)
