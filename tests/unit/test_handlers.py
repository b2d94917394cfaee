"""
Unit tests for the Lambda entry points
"""
import json

from trip_summary.handlers.refresh import lambda_handler as refresh_handler
from trip_summary.handlers.reporting import lambda_handler as reporting_handler


def test_refresh_handler_empty_store(dynamodb):
    result = refresh_handler({}, None)

    assert result['statusCode'] == 200
    body = json.loads(result['body'])
    assert body['summary_count'] == 0
    assert body['summaries'] == []


def test_refresh_handler_with_trips(trip_repository, sample_trips):
    trip_repository.put_trips(sample_trips)

    result = refresh_handler({'correlation_id': 'nightly-1'}, None)

    assert result['statusCode'] == 200
    body = json.loads(result['body'])
    assert body['correlation_id'] == 'nightly-1'
    assert body['summary_count'] == 3
    assert body['summaries'][0]['summary_date'] == '2016-07-11'
    assert body['summaries'][0]['avg_duration_minutes'] == 59.5


def test_refresh_handler_reports_input_failure(trip_repository):
    trip_repository.table.put_item(Item={'request_id': 1, 'pickup_point': 'Moon'})

    result = refresh_handler({}, None)

    assert result['statusCode'] == 500
    body = json.loads(result['body'])
    assert body['error']['error_type'] == 'InputReadFailure'
    assert body['error']['error_category'] == 'SCHEMA_ERROR'


def test_reporting_handler_daily_summary(trip_repository, sample_trips):
    trip_repository.put_trips(sample_trips)
    refresh_handler({}, None)

    result = reporting_handler({'report': 'daily_summary'}, None)

    assert result['statusCode'] == 200
    rows = json.loads(result['body'])['result']
    assert [row['total_trips'] for row in rows] == [2, 3, 2]


def test_reporting_handler_runs_reports(trip_repository, sample_trips):
    trip_repository.put_trips(sample_trips)

    peak = json.loads(reporting_handler({'report': 'peak_demand_dates'}, None)['body'])
    assert peak['result'][0] == {'trip_date': '2016-07-12', 'trips_count': 3}

    activity = json.loads(reporting_handler(
        {'report': 'driver_activity', 'params': {'driver_id': 2}}, None)['body'])
    assert [row['trip_date'] for row in activity['result']] == ['2016-07-13']

    total = json.loads(reporting_handler({'report': 'total_trips'}, None)['body'])
    assert total['result'] == 7


def test_reporting_handler_quality(trip_repository, sample_trips):
    trip_repository.put_trips(sample_trips)

    body = json.loads(reporting_handler({'report': 'quality'}, None)['body'])

    assert body['result']['anomalous_duration_count'] == 1
    assert body['result']['null_counts']['null_drop_times'] == 1


def test_reporting_handler_unknown_report(dynamodb):
    result = reporting_handler({'report': 'does_not_exist'}, None)
    assert result['statusCode'] == 400


def test_refresh_handler_without_tables(aws):
    result = refresh_handler({'correlation_id': 'no-tables'}, None)

    assert result['statusCode'] == 500
    error = json.loads(result['body'])['error']
    assert error['error_type'] == 'PersistenceFailure'
    assert error['correlation_id'] == 'no-tables'


def test_reporting_handler_without_tables(aws):
    summary = reporting_handler({'report': 'daily_summary'}, None)
    assert summary['statusCode'] == 500
    assert json.loads(summary['body'])['error']['error_type'] == 'PersistenceFailure'

    total = reporting_handler({'report': 'total_trips'}, None)
    assert total['statusCode'] == 500
    assert json.loads(total['body'])['error']['error_type'] == 'InputReadFailure'
