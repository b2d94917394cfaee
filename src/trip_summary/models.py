"""
Ride Trip Summary - Domain Records
Trip requests, daily summaries and their DynamoDB item encodings
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from trip_summary.utils import (
    format_date,
    format_datetime,
    is_missing,
    parse_date,
    parse_timestamp,
)

TWO_PLACES = Decimal('0.01')


class PickupPoint(str, Enum):
    """Origin of a trip request"""
    AIRPORT = 'Airport'
    CITY = 'City'

    @classmethod
    def parse(cls, value) -> 'PickupPoint':
        if isinstance(value, cls):
            return value
        text = str(value).strip() if value is not None else ''
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown pickup point: {value!r}")


@dataclass(frozen=True)
class TripRequest:
    request_id: int
    pickup_point: PickupPoint
    driver_id: Optional[int]
    status: str
    request_timestamp: datetime
    drop_timestamp: Optional[datetime] = None

    @property
    def trip_duration_minutes(self) -> Optional[int]:
        """Whole minutes from request to drop, truncated toward zero"""
        if self.drop_timestamp is None:
            return None
        seconds = (self.drop_timestamp - self.request_timestamp).total_seconds()
        return int(seconds / 60)

    @property
    def request_date(self) -> date:
        return self.request_timestamp.date()

    def to_item(self) -> Dict[str, Any]:
        item = {
            'request_id': int(self.request_id),
            'pickup_point': self.pickup_point.value,
            'status': self.status,
            'request_timestamp': format_datetime(self.request_timestamp),
        }
        # DynamoDB items omit missing attributes rather than storing nulls
        if self.driver_id is not None:
            item['driver_id'] = int(self.driver_id)
        if self.drop_timestamp is not None:
            item['drop_timestamp'] = format_datetime(self.drop_timestamp)
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'TripRequest':
        request_timestamp = parse_timestamp(item.get('request_timestamp'))
        if request_timestamp is None:
            raise ValueError(f"Trip {item.get('request_id')} has no request_timestamp")

        driver_id = item.get('driver_id')
        return cls(
            request_id=int(item['request_id']),
            pickup_point=PickupPoint.parse(item.get('pickup_point')),
            driver_id=None if is_missing(driver_id) else int(driver_id),
            status=str(item.get('status') or ''),
            request_timestamp=request_timestamp,
            drop_timestamp=parse_timestamp(item.get('drop_timestamp')),
        )


@dataclass(frozen=True)
class DailySummary:
    summary_date: date
    total_trips: int
    airport_trips: int
    city_trips: int
    avg_duration_minutes: Optional[Decimal]
    last_updated: datetime

    def to_item(self, snapshot_id: str) -> Dict[str, Any]:
        item = {
            'snapshot_id': snapshot_id,
            'summary_date': format_date(self.summary_date),
            'total_trips': self.total_trips,
            'airport_trips': self.airport_trips,
            'city_trips': self.city_trips,
            'last_updated': format_datetime(self.last_updated),
        }
        if self.avg_duration_minutes is not None:
            item['avg_duration_minutes'] = self.avg_duration_minutes
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'DailySummary':
        avg = item.get('avg_duration_minutes')
        return cls(
            summary_date=parse_date(item['summary_date']),
            total_trips=int(item['total_trips']),
            airport_trips=int(item['airport_trips']),
            city_trips=int(item['city_trips']),
            avg_duration_minutes=None if avg is None else round_minutes(Decimal(str(avg))),
            last_updated=parse_timestamp(item['last_updated']),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation"""
        return {
            'summary_date': format_date(self.summary_date),
            'total_trips': self.total_trips,
            'airport_trips': self.airport_trips,
            'city_trips': self.city_trips,
            'avg_duration_minutes': self.avg_duration_minutes,
            'last_updated': format_datetime(self.last_updated),
        }


def round_minutes(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def convert_decimals(obj):
    """Convert Decimal objects to float for JSON serialization"""
    if isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, dict):
        return {key: convert_decimals(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [convert_decimals(item) for item in obj]
    return obj
