"""
Unit tests for CSV extract validation and loading
"""
import json
from datetime import date, datetime
from decimal import Decimal

import boto3

from trip_summary.aggregator import DailyAggregator
from trip_summary.ingest import CSVTripLoader, normalise_column, read_extract
from trip_summary.validation import build_trip_request, validate_trip_record


def valid_record(**overrides):
    record = {
        'request_id': '619',
        'pickup_point': 'Airport',
        'driver_id': '1',
        'status': 'Trip Completed',
        'request_timestamp': '11/7/2016 11:51',
        'drop_timestamp': '11/7/2016 13:00',
    }
    record.update(overrides)
    return record


def error_types(result):
    return [error['type'] for error in result['errors']]


def test_normalise_column():
    assert normalise_column(' Request id ') == 'request_id'
    assert normalise_column('Drop timestamp') == 'drop_timestamp'


def test_read_extract_uses_canonical_columns(sample_csv):
    frame = read_extract(sample_csv)
    assert list(frame.columns) == ['request_id', 'pickup_point', 'driver_id', 'status',
                                   'request_timestamp', 'drop_timestamp']
    assert len(frame) == 9


def test_valid_record_passes():
    result = validate_trip_record(valid_record())
    assert result['is_valid']
    assert result['errors'] == []
    assert result['warnings'] == []


def test_unassigned_request_is_valid():
    result = validate_trip_record(valid_record(driver_id='NA', drop_timestamp='NA',
                                               status='No Cars Available'))
    assert result['is_valid']
    trip = build_trip_request(valid_record(driver_id='NA', drop_timestamp='NA'))
    assert trip.driver_id is None
    assert trip.drop_timestamp is None


def test_unknown_pickup_point_is_rejected():
    result = validate_trip_record(valid_record(pickup_point='Downtown'))
    assert not result['is_valid']
    assert error_types(result) == ['INVALID_ENUM']


def test_missing_and_malformed_fields_are_rejected():
    result = validate_trip_record(valid_record(request_id='', request_timestamp='yesterday', driver_id='1.5'))
    assert not result['is_valid']
    assert set(error_types(result)) == {'MISSING_FIELD', 'TYPE_ERROR', 'INVALID_DATETIME'}


def test_duration_anomalies_are_warnings():
    negative = validate_trip_record(valid_record(drop_timestamp='11/7/2016 10:00'))
    assert negative['is_valid']
    assert [w['type'] for w in negative['warnings']] == ['NEGATIVE_DURATION']

    long_trip = validate_trip_record(valid_record(drop_timestamp='11/7/2016 18:00'), max_duration_minutes=180)
    assert long_trip['is_valid']
    assert [w['type'] for w in long_trip['warnings']] == ['LONG_DURATION']


def test_build_trip_request_parses_mixed_formats():
    trip = build_trip_request(valid_record(request_timestamp='13-07-2016 08:33:16',
                                           drop_timestamp='13-07-2016 09:00:00'))
    assert trip.request_timestamp == datetime(2016, 7, 13, 8, 33, 16)
    assert trip.trip_duration_minutes == 26


def test_load_sample_extract(trip_repository, sample_csv):
    s3 = boto3.client('s3', region_name='us-east-1')
    s3.create_bucket(Bucket='invalid-trip-rows')
    loader = CSVTripLoader(trip_repository, invalid_data_bucket='invalid-trip-rows', s3_client=s3)

    stats = loader.load(sample_csv, load_id='load-1')

    assert stats['rows_read'] == 9
    assert stats['rows_loaded'] == 7
    assert stats['rows_rejected'] == 2
    assert stats['rows_with_warnings'] == 1
    assert stats['archived_invalid'] is True

    trips = {trip.request_id: trip for trip in trip_repository.read_all()}
    assert set(trips) == {619, 867, 1807, 2532, 3112, 3879, 1362}
    assert trips[1362].driver_id is None
    assert trips[1362].drop_timestamp is None

    [archived] = s3.list_objects_v2(Bucket='invalid-trip-rows')['Contents']
    assert archived['Key'].startswith('invalid-data/date=')
    assert archived['Key'].endswith('/load-1.json')
    body = json.loads(s3.get_object(Bucket='invalid-trip-rows', Key=archived['Key'])['Body'].read())
    assert body['rejected_count'] == 2
    assert sorted(row['record']['request_id'] for row in body['rejected_rows']) == ['4021', '4022']


def test_load_without_archive_bucket(trip_repository, sample_csv):
    stats = CSVTripLoader(trip_repository).load(sample_csv)
    assert stats['rows_loaded'] == 7
    assert stats['archived_invalid'] is False


def test_duplicate_request_ids_keep_last_row(trip_repository, tmp_path):
    extract = tmp_path / 'duplicates.csv'
    extract.write_text(
        'Request id,Pickup point,Driver id,Status,Request timestamp,Drop timestamp\n'
        '10,City,4,Trip Completed,11/7/2016 08:00,11/7/2016 08:30\n'
        '10,Airport,4,Trip Completed,11/7/2016 09:00,11/7/2016 09:45\n'
    )
    stats = CSVTripLoader(trip_repository).load(extract)

    assert stats['duplicate_ids'] == 1
    [trip] = trip_repository.read_all()
    assert trip.pickup_point.value == 'Airport'


def test_loaded_extract_refreshes_into_summary(trip_repository, summary_store, settings, sample_csv):
    CSVTripLoader(trip_repository).load(sample_csv)

    summaries = DailyAggregator(trip_repository, summary_store, settings).refresh()

    assert [(s.summary_date, s.total_trips, s.airport_trips, s.city_trips, s.avg_duration_minutes)
            for s in summaries] == [
        (date(2016, 7, 11), 2, 2, 0, Decimal('59.50')),
        (date(2016, 7, 12), 3, 1, 2, Decimal('48.00')),
        (date(2016, 7, 13), 2, 1, 1, Decimal('-30.50')),
    ]
