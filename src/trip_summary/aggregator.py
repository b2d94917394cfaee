"""
Ride Trip Summary - Daily Aggregator
Recomputes the per-day trip summary from every trip request and replaces the
summary store in one step
"""
import logging
import threading
import time
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from trip_summary.config import Settings
from trip_summary.errors import InputReadFailure, PersistenceFailure
from trip_summary.models import DailySummary, PickupPoint, TripRequest, round_minutes
from trip_summary.storage.summary import DailySummaryStore
from trip_summary.storage.trips import TripRepository

logger = logging.getLogger(__name__)

# One in-process lock per summary table; the DynamoDB lease covers other processes
_process_locks: Dict[str, threading.Lock] = {}
_process_locks_guard = threading.Lock()


def _process_lock(table_name: str) -> threading.Lock:
    with _process_locks_guard:
        return _process_locks.setdefault(table_name, threading.Lock())


class _DayTotals:
    __slots__ = ('total', 'airport', 'city', 'duration_sum', 'duration_count')

    def __init__(self):
        self.total = 0
        self.airport = 0
        self.city = 0
        self.duration_sum = 0
        self.duration_count = 0

    def add(self, trip: TripRequest) -> None:
        self.total += 1
        if trip.pickup_point is PickupPoint.AIRPORT:
            self.airport += 1
        elif trip.pickup_point is PickupPoint.CITY:
            self.city += 1
        else:
            raise ValueError(f"Unhandled pickup point {trip.pickup_point!r}")

        # Negative durations are kept; missing ones are left out of the mean
        duration = trip.trip_duration_minutes
        if duration is not None:
            self.duration_sum += duration
            self.duration_count += 1

    def average_duration(self) -> Optional[Decimal]:
        if not self.duration_count:
            return None
        return round_minutes(Decimal(self.duration_sum) / Decimal(self.duration_count))


def compute_daily_summaries(trips: Iterable[TripRequest], refreshed_at: datetime) -> List[DailySummary]:
    """Group trips by request date and compute one summary per date, ordered by date"""
    days: Dict[date, _DayTotals] = {}
    for trip in trips:
        days.setdefault(trip.request_date, _DayTotals()).add(trip)

    return [
        DailySummary(
            summary_date=day,
            total_trips=totals.total,
            airport_trips=totals.airport,
            city_trips=totals.city,
            avg_duration_minutes=totals.average_duration(),
            last_updated=refreshed_at,
        )
        for day, totals in sorted(days.items())
    ]


class DailyAggregator:
    """Sole writer of the daily summary store"""

    def __init__(self, trip_repository: TripRepository, summary_store: DailySummaryStore,
                 settings: Optional[Settings] = None):
        self.trip_repository = trip_repository
        self.summary_store = summary_store
        self.settings = settings or Settings()

    def refresh(self, correlation_id: Optional[str] = None) -> List[DailySummary]:
        correlation_id = correlation_id or str(uuid.uuid4())
        settings = self.settings

        # Callers may reuse a correlation id; the lease owner must be unique per run
        lease_owner = f"{correlation_id}:{uuid.uuid4().hex[:8]}"

        with _process_lock(self.summary_store.table_name):
            with self.summary_store.lease(
                lease_owner,
                ttl_seconds=settings.lock_ttl_seconds,
                wait_seconds=settings.lock_wait_seconds,
                poll_seconds=settings.lock_poll_seconds,
            ):
                refreshed_at = datetime.now().replace(microsecond=0)
                logger.info(f"[{correlation_id}] Refreshing daily summary at {refreshed_at}")

                trips = self._read_trips(correlation_id)
                summaries = compute_daily_summaries(trips, refreshed_at)
                self._replace_with_retry(summaries, refreshed_at, correlation_id, lease_owner)

        logger.info(f"[{correlation_id}] Daily summary refreshed - Trips: {len(trips)}, "
                    f"Days: {len(summaries)}")
        return summaries

    def _read_trips(self, correlation_id: str) -> List[TripRequest]:
        try:
            return list(self.trip_repository.read_all())
        except InputReadFailure:
            raise
        except Exception as e:
            logger.error(f"[{correlation_id}] Failed reading trip requests: {e}")
            raise InputReadFailure(f"Could not read trip requests: {e}") from e

    def _replace_with_retry(self, summaries: List[DailySummary], refreshed_at: datetime,
                            correlation_id: str, lease_owner: Optional[str] = None) -> str:
        retries_left = self.settings.persistence_retries
        while True:
            try:
                return self.summary_store.replace_all(summaries, refreshed_at, lease_owner=lease_owner)
            except PersistenceFailure as e:
                if not e.is_transient or retries_left <= 0:
                    raise
                retries_left -= 1
                logger.warning(f"[{correlation_id}] Transient failure replacing summaries, "
                               f"retrying in {self.settings.retry_backoff_seconds}s: {e}")
                time.sleep(self.settings.retry_backoff_seconds)
