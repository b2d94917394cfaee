"""
Ride Trip Summary - Utility Functions
"""
from datetime import date, datetime
from typing import Optional

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'

# Formats seen in the raw request extract, tried in order
RAW_TIMESTAMP_FORMATS = (
    '%Y-%m-%d %H:%M:%S',
    '%d/%m/%Y %H:%M',
    '%d/%m/%Y %H:%M:%S',
    '%d-%m-%Y %H:%M:%S',
    '%d-%m-%Y %H:%M',
)

MISSING_MARKERS = ('', 'NA', 'N/A', 'NAN', 'NONE', 'NULL', 'NAT')


def is_missing(value) -> bool:
    """True for None, NaN and the textual placeholders used in extracts"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().upper() in MISSING_MARKERS
    try:
        # NaN and NaT are the only values unequal to themselves
        return bool(value != value)
    except (TypeError, ValueError):
        return False


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a timestamp from the extract or from storage.
    Returns None for missing values, raises ValueError for malformed ones.
    """
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)

    text = str(value).strip()
    for fmt in RAW_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        raise ValueError(f"Unrecognised timestamp format: {value!r}")


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime for consistent storage"""
    if dt is None:
        return None
    return dt.strftime(TIMESTAMP_FORMAT)


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), DATE_FORMAT).date()


def format_duration(seconds) -> Optional[str]:
    """Render seconds as HH:MM:SS; hours may exceed 24"""
    if seconds is None or seconds != seconds:
        return None
    total = int(round(seconds))
    sign = '-' if total < 0 else ''
    total = abs(total)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{sign}{hours:02d}:{minutes:02d}:{secs:02d}"
