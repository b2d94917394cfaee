"""
Ride Trip Summary - Configuration
All settings come from environment variables, as on Lambda
"""
import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


@dataclass(frozen=True)
class Settings:
    region: str = 'us-east-1'
    trip_table_name: str = 'uber-trip-requests-dev'
    summary_table_name: str = 'uber-trip-daily-summary-dev'
    invalid_data_bucket: str = ''
    dynamodb_endpoint_url: Optional[str] = None
    lock_ttl_seconds: int = 300
    lock_wait_seconds: float = 30.0
    lock_poll_seconds: float = 0.5
    persistence_retries: int = 1
    retry_backoff_seconds: float = 1.0
    max_trip_duration_minutes: int = 180
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            region=os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-east-1')),
            trip_table_name=os.environ.get('TRIP_TABLE_NAME', 'uber-trip-requests-dev'),
            summary_table_name=os.environ.get('SUMMARY_TABLE_NAME', 'uber-trip-daily-summary-dev'),
            invalid_data_bucket=os.environ.get('INVALID_DATA_BUCKET', ''),
            dynamodb_endpoint_url=os.environ.get('DYNAMODB_ENDPOINT_URL') or None,
            lock_ttl_seconds=_env_int('REFRESH_LOCK_TTL_SECONDS', 300),
            lock_wait_seconds=_env_float('REFRESH_LOCK_WAIT_SECONDS', 30.0),
            lock_poll_seconds=_env_float('REFRESH_LOCK_POLL_SECONDS', 0.5),
            persistence_retries=_env_int('PERSISTENCE_RETRIES', 1),
            retry_backoff_seconds=_env_float('RETRY_BACKOFF_SECONDS', 1.0),
            max_trip_duration_minutes=_env_int('MAX_TRIP_DURATION_MINUTES', 180),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        )
