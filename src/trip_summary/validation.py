"""
Ride Trip Summary - Trip Record Validation
Schema enforcement for rows of the request extract before they are loaded
"""
from typing import Any, Dict

from trip_summary.errors import ValidationError
from trip_summary.models import PickupPoint, TripRequest
from trip_summary.utils import is_missing, parse_timestamp


# Data validation schema
TRIP_REQUEST_SCHEMA = {
    'required_fields': ['request_id', 'pickup_point', 'status', 'request_timestamp'],
    'optional_fields': ['driver_id', 'drop_timestamp'],
    'integer_fields': ['request_id', 'driver_id'],
    'timestamp_fields': ['request_timestamp', 'drop_timestamp'],
    'enum_fields': {
        'pickup_point': [point.value for point in PickupPoint],
    },
    'field_ranges': {
        'request_id': (1, 2_147_483_647),
        'driver_id': (1, 2_147_483_647),
    },
    'max_status_length': 20,
}


def _to_int(value) -> int:
    number = float(str(value).strip())
    if not number.is_integer():
        raise ValueError(f"{value!r} is not a whole number")
    return int(number)


def validate_trip_record(record: Dict[str, Any], max_duration_minutes: int = 180) -> Dict[str, Any]:
    """Validate one extract row; anomalies that the quality checks report are warnings"""

    validation_result = {
        'is_valid': True,
        'errors': [],
        'warnings': []
    }

    def error(error_type: str, message: str, field: str):
        validation_result['is_valid'] = False
        validation_result['errors'].append({'type': error_type, 'message': message, 'field': field})

    schema = TRIP_REQUEST_SCHEMA

    for field in schema['required_fields']:
        if is_missing(record.get(field)):
            error('MISSING_FIELD', f'Missing required field: {field}', field)

    for field in schema['integer_fields']:
        value = record.get(field)
        if is_missing(value):
            continue
        try:
            number = _to_int(value)
        except (TypeError, ValueError):
            error('TYPE_ERROR', f'Field {field} must be an integer, got {value!r}', field)
            continue
        min_val, max_val = schema['field_ranges'][field]
        if not (min_val <= number <= max_val):
            error('RANGE_ERROR', f'Field {field} value {number} is outside valid range [{min_val}, {max_val}]', field)

    for field, allowed in schema['enum_fields'].items():
        value = record.get(field)
        if not is_missing(value) and str(value).strip() not in allowed:
            error('INVALID_ENUM', f'Field {field} must be one of {allowed}, got {value!r}', field)

    status = record.get('status')
    if not is_missing(status) and len(str(status).strip()) > schema['max_status_length']:
        error('LENGTH_ERROR', f"Field status is longer than {schema['max_status_length']} characters", 'status')

    parsed = {}
    for field in schema['timestamp_fields']:
        try:
            parsed[field] = parse_timestamp(record.get(field))
        except ValueError:
            error('INVALID_DATETIME', f'Invalid {field} format: {record.get(field)!r}', field)

    # Business rules: duration anomalies are kept and reported, never rejected
    request_time = parsed.get('request_timestamp')
    drop_time = parsed.get('drop_timestamp')
    if request_time and drop_time:
        minutes = (drop_time - request_time).total_seconds() / 60
        if minutes < 0:
            validation_result['warnings'].append({
                'type': 'NEGATIVE_DURATION',
                'message': 'drop_timestamp is earlier than request_timestamp',
                'field': 'drop_timestamp'
            })
        elif minutes > max_duration_minutes:
            validation_result['warnings'].append({
                'type': 'LONG_DURATION',
                'message': f'Trip lasted {int(minutes)} minutes, more than {max_duration_minutes}',
                'field': 'drop_timestamp'
            })

    return validation_result


def build_trip_request(record: Dict[str, Any]) -> TripRequest:
    """Convert a validated extract row into a TripRequest"""
    try:
        driver_id = record.get('driver_id')
        return TripRequest(
            request_id=_to_int(record['request_id']),
            pickup_point=PickupPoint.parse(record['pickup_point']),
            driver_id=None if is_missing(driver_id) else _to_int(driver_id),
            status=str(record['status']).strip(),
            request_timestamp=parse_timestamp(record['request_timestamp']),
            drop_timestamp=parse_timestamp(record.get('drop_timestamp')),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f'Cannot build trip request: {e}', 'CONVERSION_ERROR') from e
