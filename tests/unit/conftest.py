"""
Shared fixtures - moto stands in for DynamoDB and S3
"""
from datetime import datetime
from pathlib import Path

import pytest
from moto import mock_aws

from trip_summary.aggregator import DailyAggregator
from trip_summary.config import Settings
from trip_summary.models import PickupPoint, TripRequest
from trip_summary.storage import DailySummaryStore, TripRepository, dynamodb_resource
from trip_summary.storage.tables import create_tables

SAMPLE_CSV = Path(__file__).parent / 'fixtures' / 'uber_request_sample.csv'


@pytest.fixture(autouse=True)
def aws_environment(monkeypatch):
    """Fake credentials and table names so nothing can reach a real account"""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
    monkeypatch.setenv('AWS_REGION', 'us-east-1')
    monkeypatch.setenv('TRIP_TABLE_NAME', 'test-trip-requests')
    monkeypatch.setenv('SUMMARY_TABLE_NAME', 'test-daily-summary')
    monkeypatch.delenv('DYNAMODB_ENDPOINT_URL', raising=False)
    monkeypatch.delenv('INVALID_DATA_BUCKET', raising=False)


@pytest.fixture
def settings():
    return Settings(
        region='us-east-1',
        trip_table_name='test-trip-requests',
        summary_table_name='test-daily-summary',
        lock_wait_seconds=2.0,
        lock_poll_seconds=0.01,
        retry_backoff_seconds=0.0,
    )


@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def dynamodb(aws, settings):
    resource = dynamodb_resource(settings)
    create_tables(resource, settings)
    return resource


@pytest.fixture
def trip_repository(dynamodb, settings):
    return TripRepository(dynamodb, settings.trip_table_name)


@pytest.fixture
def summary_store(dynamodb, settings):
    return DailySummaryStore(dynamodb, settings.summary_table_name)


@pytest.fixture
def aggregator(trip_repository, summary_store, settings):
    return DailyAggregator(trip_repository, summary_store, settings)


@pytest.fixture
def sample_csv():
    return SAMPLE_CSV


def make_trip(request_id, pickup_point, request, drop=None, driver_id=1, status='Trip Completed'):
    return TripRequest(
        request_id=request_id,
        pickup_point=PickupPoint(pickup_point),
        driver_id=driver_id,
        status=status,
        request_timestamp=datetime.fromisoformat(request),
        drop_timestamp=datetime.fromisoformat(drop) if drop else None,
    )


@pytest.fixture
def trip_factory():
    return make_trip


@pytest.fixture
def sample_trips():
    """The valid rows of the sample extract"""
    return [
        make_trip(619, 'Airport', '2016-07-11 11:51:00', '2016-07-11 13:00:00'),
        make_trip(867, 'Airport', '2016-07-11 17:57:00', '2016-07-11 18:47:00'),
        make_trip(1807, 'City', '2016-07-12 09:17:00', '2016-07-12 09:58:00'),
        make_trip(2532, 'Airport', '2016-07-12 21:08:00', '2016-07-12 22:03:00'),
        make_trip(3112, 'City', '2016-07-13 06:08:41', '2016-07-13 06:31:00', driver_id=2),
        make_trip(3879, 'Airport', '2016-07-13 17:23:18', '2016-07-13 16:00:00', driver_id=2),
        make_trip(1362, 'City', '2016-07-12 00:02:00', None, driver_id=None, status='No Cars Available'),
    ]
