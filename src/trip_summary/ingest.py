"""
CSV-based Trip Request Loader for Ride Trip Summary
Validates the raw request extract and bulk-loads it into the trip store
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
import pandas as pd

from trip_summary.errors import ValidationError
from trip_summary.storage.trips import TripRepository
from trip_summary.validation import build_trip_request, validate_trip_record

logger = logging.getLogger(__name__)

CANONICAL_COLUMNS = ['request_id', 'pickup_point', 'driver_id', 'status',
                     'request_timestamp', 'drop_timestamp']


def normalise_column(name: str) -> str:
    """'Request id' -> 'request_id'"""
    return '_'.join(str(name).strip().lower().split())


def read_extract(csv_path) -> pd.DataFrame:
    """Read the extract as raw text so every field is validated the same way"""
    frame = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    frame.columns = [normalise_column(column) for column in frame.columns]
    for column in CANONICAL_COLUMNS:
        if column not in frame.columns:
            frame[column] = ''
    return frame[CANONICAL_COLUMNS]


class CSVTripLoader:
    def __init__(self, repository: TripRepository, invalid_data_bucket: str = '',
                 s3_client=None, region: str = 'us-east-1', max_duration_minutes: int = 180):
        self.repository = repository
        self.invalid_data_bucket = invalid_data_bucket
        self.region = region
        self.max_duration_minutes = max_duration_minutes
        self._s3_client = s3_client

        # Statistics
        self.rows_read = 0
        self.rows_loaded = 0
        self.rows_rejected = 0
        self.rows_with_warnings = 0
        self.duplicate_ids = 0

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client('s3', region_name=self.region)
        return self._s3_client

    def load(self, csv_path, load_id: Optional[str] = None) -> Dict[str, Any]:
        """Validate and load an extract; returns the load statistics"""
        load_id = load_id or str(uuid.uuid4())
        frame = read_extract(csv_path)
        logger.info(f"[{load_id}] Loaded {len(frame)} rows from {csv_path}")

        trips = []
        rejected = []
        seen_ids = set()

        for row_number, record in enumerate(frame.to_dict('records'), start=2):
            self.rows_read += 1
            result = validate_trip_record(record, self.max_duration_minutes)

            if result['is_valid']:
                try:
                    trip = build_trip_request(record)
                except ValidationError as ve:
                    result['is_valid'] = False
                    result['errors'].append({'type': ve.error_type, 'message': ve.message, 'field': ve.field})

            if not result['is_valid']:
                logger.warning(f"[{load_id}] Rejected row {row_number}: "
                               f"{[e['message'] for e in result['errors']]}")
                rejected.append({'row_number': row_number, 'record': record,
                                 'errors': result['errors'], 'warnings': result['warnings']})
                self.rows_rejected += 1
                continue

            if result['warnings']:
                self.rows_with_warnings += 1
                logger.info(f"[{load_id}] Row {row_number} loaded with warnings: "
                            f"{[w['type'] for w in result['warnings']]}")

            if trip.request_id in seen_ids:
                self.duplicate_ids += 1
                logger.warning(f"[{load_id}] Duplicate request_id {trip.request_id} at row {row_number}, "
                               f"later row wins")
            seen_ids.add(trip.request_id)
            trips.append(trip)

        self.rows_loaded += self.repository.put_trips(trips)

        archived = False
        if rejected:
            archived = self.archive_invalid_data(rejected, load_id)

        stats = self.statistics()
        stats.update({'load_id': load_id, 'archived_invalid': archived})
        self.log_final_statistics(load_id)
        return stats

    def archive_invalid_data(self, rejected: List[Dict[str, Any]], load_id: str) -> bool:
        """Archive rejected rows to S3 with structured metadata"""

        if not self.invalid_data_bucket:
            logger.warning(f"[{load_id}] INVALID_DATA_BUCKET not configured, "
                           f"{len(rejected)} rejected rows not archived")
            return False

        now = datetime.now()
        s3_key = f"invalid-data/date={now.strftime('%Y-%m-%d')}/hour={now.strftime('%H')}/{load_id}.json"
        metadata = {
            'timestamp': now.isoformat(),
            'load_id': load_id,
            'rejected_count': len(rejected),
            'rejected_rows': rejected,
            'error_category': 'VALIDATION_ERROR'
        }

        self.s3_client.put_object(
            Bucket=self.invalid_data_bucket,
            Key=s3_key,
            Body=json.dumps(metadata, indent=2, default=str),
            ContentType='application/json',
            Metadata={
                'load-id': load_id,
                'rejected-count': str(len(rejected))
            }
        )

        logger.info(f"[{load_id}] Archived invalid rows to s3://{self.invalid_data_bucket}/{s3_key}")
        return True

    def statistics(self) -> Dict[str, int]:
        return {
            'rows_read': self.rows_read,
            'rows_loaded': self.rows_loaded,
            'rows_rejected': self.rows_rejected,
            'rows_with_warnings': self.rows_with_warnings,
            'duplicate_ids': self.duplicate_ids,
        }

    def log_final_statistics(self, load_id: str):
        """Log load statistics"""
        logger.info(f"[{load_id}] ✅ Trip request load completed")
        logger.info(f"   - Rows read: {self.rows_read}")
        logger.info(f"   - Rows loaded: {self.rows_loaded}")
        logger.info(f"   - Rows rejected: {self.rows_rejected}")
        logger.info(f"   - Rows with warnings: {self.rows_with_warnings}")
        logger.info(f"   - Duplicate request ids: {self.duplicate_ids}")

        if self.rows_rejected:
            logger.warning(f"⚠️  {self.rows_rejected} rows were rejected")
