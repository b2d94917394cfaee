"""
Trip request store backed by a DynamoDB table keyed on request_id
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from trip_summary.errors import InputReadFailure
from trip_summary.models import TripRequest
from trip_summary.utils import format_date

logger = logging.getLogger(__name__)


class TripRepository:
    def __init__(self, dynamodb, table_name: str):
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)

    def put_trips(self, trips: Iterable[TripRequest]) -> int:
        """Bulk-load trips; an existing request_id is overwritten"""
        written = 0
        with self.table.batch_writer(overwrite_by_pkeys=['request_id']) as batch:
            for trip in trips:
                batch.put_item(Item=trip.to_item())
                written += 1
        logger.info(f"Loaded {written} trip requests into {self.table_name}")
        return written

    def scan_items(self, start_date: Optional[date] = None,
                   end_date: Optional[date] = None) -> Iterator[Dict[str, Any]]:
        """Yield raw items across every scan page, optionally within a request-date range"""
        scan_kwargs = {}
        condition = _date_range_condition(start_date, end_date)
        if condition is not None:
            scan_kwargs['FilterExpression'] = condition

        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                yield from response.get('Items', [])
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                scan_kwargs['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            raise InputReadFailure(f"Could not scan {self.table_name}: {e}") from e

    def read_all(self, start_date: Optional[date] = None,
                 end_date: Optional[date] = None) -> List[TripRequest]:
        trips = []
        for item in self.scan_items(start_date, end_date):
            try:
                trips.append(TripRequest.from_item(item))
            except (KeyError, TypeError, ValueError) as e:
                raise InputReadFailure(
                    f"Malformed trip record {item.get('request_id')!r} in {self.table_name}: {e}"
                ) from e
        logger.info(f"Read {len(trips)} trip requests from {self.table_name}")
        return trips


def _date_range_condition(start_date: Optional[date], end_date: Optional[date]):
    # Stored timestamps are 'YYYY-MM-DD HH:MM:SS' so string order is time order
    field = Attr('request_timestamp')
    if start_date and end_date:
        return field.between(f"{format_date(start_date)} 00:00:00", f"{format_date(end_date)} 23:59:59")
    if start_date:
        return field.gte(f"{format_date(start_date)} 00:00:00")
    if end_date:
        return field.lte(f"{format_date(end_date)} 23:59:59")
    return None
