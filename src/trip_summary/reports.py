"""
Ride Trip Summary - Reporting Projections
Read-only reports over trip requests, computed with pandas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List

import numpy as np
import pandas as pd

from trip_summary.models import PickupPoint
from trip_summary.utils import format_duration, is_missing, parse_timestamp

TRIP_COLUMNS = ['request_id', 'pickup_point', 'driver_id', 'status',
                'request_timestamp', 'drop_timestamp', 'trip_duration_minutes']


def _optional_int(value):
    if is_missing(value):
        return None
    try:
        return int(Decimal(str(value).strip()))
    except (ArithmeticError, ValueError):
        return None


def _optional_timestamp(value):
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def trip_frame(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Build the canonical trip DataFrame from stored items or extract rows.
    Unparseable values become missing so the quality checks can see them.
    """
    rows = []
    for record in records:
        pickup_point = record.get('pickup_point')
        status = record.get('status')
        rows.append({
            'request_id': _optional_int(record.get('request_id')),
            'pickup_point': None if is_missing(pickup_point) else str(pickup_point).strip(),
            'driver_id': _optional_int(record.get('driver_id')),
            'status': None if is_missing(status) else str(status).strip(),
            'request_timestamp': _optional_timestamp(record.get('request_timestamp')),
            'drop_timestamp': _optional_timestamp(record.get('drop_timestamp')),
        })

    frame = pd.DataFrame(rows, columns=TRIP_COLUMNS[:-1])
    frame['request_id'] = pd.array(frame['request_id'].tolist(), dtype='Int64')
    frame['driver_id'] = pd.array(frame['driver_id'].tolist(), dtype='Int64')
    frame['request_timestamp'] = pd.to_datetime(frame['request_timestamp'])
    frame['drop_timestamp'] = pd.to_datetime(frame['drop_timestamp'])

    # Whole minutes, truncated toward zero
    seconds = (frame['drop_timestamp'] - frame['request_timestamp']).dt.total_seconds()
    frame['trip_duration_minutes'] = np.trunc(seconds / 60)
    return frame


def _duration_seconds(frame: pd.DataFrame) -> pd.Series:
    return (frame['drop_timestamp'] - frame['request_timestamp']).dt.total_seconds()


def _with_drivers(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame['driver_id'].notna()].assign(driver_id=lambda f: f['driver_id'].astype('int64'))


def total_trips(frame: pd.DataFrame) -> int:
    return int(len(frame))


def trips_by_pickup_point(frame: pd.DataFrame) -> pd.DataFrame:
    total = len(frame)
    counts = frame.groupby('pickup_point').size().reset_index(name='trip_count')
    counts['percentage'] = (counts['trip_count'] * 100.0 / total).round(2) if total else 0.0
    return counts


def avg_duration_by_pickup_point(frame: pd.DataFrame) -> pd.DataFrame:
    work = frame.assign(duration_seconds=_duration_seconds(frame))
    grouped = work.groupby('pickup_point').agg(
        avg_duration_minutes=('trip_duration_minutes', 'mean'),
        avg_duration_seconds=('duration_seconds', 'mean'),
    ).reset_index()
    grouped['avg_duration_minutes'] = grouped['avg_duration_minutes'].round(4)
    grouped['avg_duration_time'] = grouped['avg_duration_seconds'].map(format_duration)
    return grouped.drop(columns='avg_duration_seconds')


def busiest_hours(frame: pd.DataFrame) -> pd.DataFrame:
    hours = frame.assign(hour_of_day=frame['request_timestamp'].dt.hour)
    counts = hours.dropna(subset=['hour_of_day']).groupby('hour_of_day').size().reset_index(name='trip_count')
    counts['hour_of_day'] = counts['hour_of_day'].astype(int)
    return counts.sort_values(['trip_count', 'hour_of_day'], ascending=[False, True]).reset_index(drop=True)


def most_active_drivers(frame: pd.DataFrame, limit: int = 10) -> pd.DataFrame:
    work = _with_drivers(frame)
    work = work.assign(duration_seconds=_duration_seconds(work))
    drivers = work.groupby('driver_id').agg(
        trips_completed=('request_id', 'size'),
        avg_seconds=('duration_seconds', 'mean'),
    ).reset_index()
    drivers['avg_trip_duration'] = drivers['avg_seconds'].map(format_duration)
    drivers = drivers.sort_values(['trips_completed', 'driver_id'], ascending=[False, True])
    return drivers.drop(columns='avg_seconds').head(limit).reset_index(drop=True)


def hourly_demand_by_pickup_point(frame: pd.DataFrame) -> pd.DataFrame:
    work = frame.dropna(subset=['request_timestamp'])
    work = work.assign(hour_of_day=work['request_timestamp'].dt.hour.astype(int))
    result = pd.DataFrame({'hour_of_day': sorted(work['hour_of_day'].unique())})
    for point, column in ((PickupPoint.AIRPORT, 'airport_pickups'), (PickupPoint.CITY, 'city_pickups')):
        counts = work[work['pickup_point'] == point.value].groupby('hour_of_day').size()
        result[column] = result['hour_of_day'].map(counts).fillna(0).astype(int)
    return result


def driver_utilization(frame: pd.DataFrame) -> pd.DataFrame:
    work = _with_drivers(frame)
    work = work.assign(duration_seconds=_duration_seconds(work))
    drivers = work.groupby('driver_id').agg(
        total_seconds=('duration_seconds', 'sum'),
        trips_completed=('request_id', 'size'),
    ).reset_index()
    drivers = drivers.sort_values(['total_seconds', 'driver_id'], ascending=[False, True])
    drivers['total_driving_time'] = drivers['total_seconds'].map(format_duration)
    return drivers[['driver_id', 'total_driving_time', 'trips_completed']].reset_index(drop=True)


def inter_trip_gaps(frame: pd.DataFrame) -> pd.DataFrame:
    """For each trip, the driver's next request made strictly after its drop"""
    columns = ['driver_id', 'first_trip_id', 'next_trip_id', 'minutes_between_trips']
    work = _with_drivers(frame)

    trips = work.dropna(subset=['drop_timestamp', 'request_timestamp'])
    trips = trips[['driver_id', 'request_id', 'request_timestamp', 'drop_timestamp']]
    candidates = work.dropna(subset=['request_timestamp'])[['driver_id', 'request_id', 'request_timestamp']]
    candidates = candidates.rename(columns={'request_id': 'next_trip_id',
                                            'request_timestamp': 'next_request_timestamp'})
    if trips.empty or candidates.empty:
        return pd.DataFrame(columns=columns)

    merged = pd.merge_asof(
        trips.sort_values('drop_timestamp'),
        candidates.sort_values('next_request_timestamp'),
        left_on='drop_timestamp',
        right_on='next_request_timestamp',
        by='driver_id',
        direction='forward',
        allow_exact_matches=False,
    )
    merged = merged.dropna(subset=['next_trip_id'])
    merged = merged.rename(columns={'request_id': 'first_trip_id'})
    merged['next_trip_id'] = merged['next_trip_id'].astype('int64')
    gap_seconds = (merged['next_request_timestamp'] - merged['drop_timestamp']).dt.total_seconds()
    merged['minutes_between_trips'] = np.trunc(gap_seconds / 60).astype('int64')
    merged = merged.sort_values(['driver_id', 'request_timestamp'])
    return merged[columns].reset_index(drop=True)


def peak_demand_dates(frame: pd.DataFrame) -> pd.DataFrame:
    work = frame.dropna(subset=['request_timestamp'])
    work = work.assign(trip_date=work['request_timestamp'].dt.date)
    counts = work.groupby('trip_date').size().reset_index(name='trips_count')
    return counts.sort_values(['trips_count', 'trip_date'], ascending=[False, True]).reset_index(drop=True)


def daily_summary_view(frame: pd.DataFrame) -> pd.DataFrame:
    """Live per-day summary, the unmaterialised counterpart of the summary store"""
    work = frame.dropna(subset=['request_timestamp'])
    work = work.assign(
        trip_date=work['request_timestamp'].dt.date,
        is_airport=(work['pickup_point'] == PickupPoint.AIRPORT.value).astype(int),
        is_city=(work['pickup_point'] == PickupPoint.CITY.value).astype(int),
    )
    view = work.groupby('trip_date').agg(
        total_trips=('pickup_point', 'size'),
        airport_trips=('is_airport', 'sum'),
        city_trips=('is_city', 'sum'),
        avg_duration_minutes=('trip_duration_minutes', 'mean'),
    ).reset_index()
    view['avg_duration_minutes'] = view['avg_duration_minutes'].round(4)
    return view


def driver_performance_view(frame: pd.DataFrame) -> pd.DataFrame:
    work = _with_drivers(frame)
    work = work.assign(duration_seconds=_duration_seconds(work))
    view = work.groupby('driver_id').agg(
        trips_completed=('request_id', 'size'),
        total_seconds=('duration_seconds', 'sum'),
        avg_trip_duration=('trip_duration_minutes', 'mean'),
        first_trip=('request_timestamp', 'min'),
        last_trip=('drop_timestamp', 'max'),
    ).reset_index()
    view['total_driving_time'] = view['total_seconds'].map(format_duration)
    view['avg_trip_duration'] = view['avg_trip_duration'].round(4)
    return view[['driver_id', 'trips_completed', 'total_driving_time', 'avg_trip_duration',
                 'first_trip', 'last_trip']]


def driver_activity(frame: pd.DataFrame, driver_id: int) -> pd.DataFrame:
    """One driver's trips per day"""
    work = frame[(frame['driver_id'] == driver_id).fillna(False)].dropna(subset=['request_timestamp'])
    work = work.assign(trip_date=work['request_timestamp'].dt.date,
                       duration_seconds=_duration_seconds(work))
    activity = work.groupby('trip_date').agg(
        trips_completed=('request_id', 'size'),
        total_seconds=('duration_seconds', 'sum'),
        first_trip_time=('request_timestamp', 'min'),
        last_trip_time=('drop_timestamp', 'max'),
    ).reset_index()
    activity['total_driving_time'] = activity['total_seconds'].map(format_duration)
    return activity[['trip_date', 'trips_completed', 'total_driving_time',
                     'first_trip_time', 'last_trip_time']].sort_values('trip_date').reset_index(drop=True)


def demand_heatmap(frame: pd.DataFrame) -> pd.DataFrame:
    work = frame.dropna(subset=['request_timestamp', 'pickup_point'])
    work = work.assign(hour_of_day=work['request_timestamp'].dt.hour.astype(int))
    heatmap = work.groupby(['hour_of_day', 'pickup_point']).size().reset_index(name='trip_count')
    return heatmap.sort_values(['hour_of_day', 'pickup_point']).reset_index(drop=True)


REPORTS: Dict[str, Callable[..., Any]] = {
    'total_trips': total_trips,
    'trips_by_pickup_point': trips_by_pickup_point,
    'avg_duration_by_pickup_point': avg_duration_by_pickup_point,
    'busiest_hours': busiest_hours,
    'most_active_drivers': most_active_drivers,
    'hourly_demand_by_pickup_point': hourly_demand_by_pickup_point,
    'driver_utilization': driver_utilization,
    'inter_trip_gaps': inter_trip_gaps,
    'peak_demand_dates': peak_demand_dates,
    'daily_summary_view': daily_summary_view,
    'driver_performance_view': driver_performance_view,
    'driver_activity': driver_activity,
    'demand_heatmap': demand_heatmap,
}


def run_report(name: str, frame: pd.DataFrame, **params):
    try:
        report = REPORTS[name]
    except KeyError:
        raise ValueError(f"Unknown report {name!r}; choose from {sorted(REPORTS)}")
    return report(frame, **params)


def _plain(value):
    if value is pd.NA or is_missing(value):
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    return value


def frame_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-friendly rows: timestamps as strings, missing values as None"""
    return [{key: _plain(value) for key, value in row.items()}
            for row in frame.astype(object).to_dict('records')]
