"""
Ride Trip Summary - Data Quality Checks
Diagnostics over trip requests. Findings are reported, never corrected, and
never feed back into the daily aggregator.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict

import pandas as pd

from trip_summary.reports import frame_to_records

logger = logging.getLogger(__name__)

NULL_AUDIT_COLUMNS = {
    'request_id': 'null_request_ids',
    'pickup_point': 'null_pickup_points',
    'driver_id': 'null_driver_ids',
    'request_timestamp': 'null_request_times',
    'drop_timestamp': 'null_drop_times',
}


def anomalous_durations(frame: pd.DataFrame, max_minutes: int = 180) -> pd.DataFrame:
    """Trips dropped before they were requested, or lasting longer than max_minutes"""
    negative = frame['drop_timestamp'] < frame['request_timestamp']
    too_long = frame['trip_duration_minutes'] > max_minutes
    columns = ['request_id', 'request_timestamp', 'drop_timestamp', 'trip_duration_minutes']
    return frame.loc[negative | too_long, columns].reset_index(drop=True)


def null_field_audit(frame: pd.DataFrame) -> Dict[str, int]:
    return {label: int(frame[column].isna().sum()) for column, label in NULL_AUDIT_COLUMNS.items()}


def duplicate_request_ids(frame: pd.DataFrame) -> pd.DataFrame:
    counts = frame.dropna(subset=['request_id']).groupby('request_id').size().reset_index(name='count')
    return counts[counts['count'] > 1].reset_index(drop=True)


@dataclass
class QualityReport:
    anomalies: pd.DataFrame
    null_counts: Dict[str, int]
    duplicates: pd.DataFrame
    total_rows: int = 0
    max_minutes: int = 180

    @property
    def has_issues(self) -> bool:
        return bool(len(self.anomalies) or len(self.duplicates) or any(self.null_counts.values()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_rows': self.total_rows,
            'max_trip_duration_minutes': self.max_minutes,
            'anomalous_duration_count': len(self.anomalies),
            'anomalous_durations': frame_to_records(self.anomalies),
            'null_counts': self.null_counts,
            'duplicate_request_id_count': len(self.duplicates),
            'duplicate_request_ids': frame_to_records(self.duplicates),
            'has_issues': self.has_issues,
        }


def run_quality_checks(frame: pd.DataFrame, max_minutes: int = 180,
                       correlation_id: str = 'quality') -> QualityReport:
    report = QualityReport(
        anomalies=anomalous_durations(frame, max_minutes),
        null_counts=null_field_audit(frame),
        duplicates=duplicate_request_ids(frame),
        total_rows=len(frame),
        max_minutes=max_minutes,
    )

    if len(report.anomalies):
        logger.warning(f"[{correlation_id}] {len(report.anomalies)} trips with impossible durations")
    for label, count in report.null_counts.items():
        if count:
            logger.warning(f"[{correlation_id}] {label}: {count}")
    if len(report.duplicates):
        logger.warning(f"[{correlation_id}] {len(report.duplicates)} duplicated request ids")

    logger.info(f"[{correlation_id}] Quality checks completed over {report.total_rows} rows - "
                f"issues found: {report.has_issues}")
    return report
