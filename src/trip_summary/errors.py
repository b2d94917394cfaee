"""
Ride Trip Summary - Error Taxonomy
Failures surfaced by the refresh workflow and how they are categorised
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError, ConnectionError as BotoConnectionError

logger = logging.getLogger(__name__)


class ErrorCategory:
    """Error categorization for different handling strategies"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SCHEMA_ERROR = "SCHEMA_ERROR"
    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    TRANSIENT_ERROR = "TRANSIENT_ERROR"


TRANSIENT_ERROR_CODES = {
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
    'InternalServerError',
    'ServiceUnavailable',
    'TransactionConflictException',
}


class TripSummaryError(Exception):
    """Base class for failures surfaced to the caller of a refresh"""
    category = ErrorCategory.SYSTEM_ERROR


class InputReadFailure(TripSummaryError):
    """Trip records could not be read or decoded; nothing was written"""
    category = ErrorCategory.SCHEMA_ERROR


class PersistenceFailure(TripSummaryError):
    """The summary store rejected the replace"""

    def __init__(self, message: str, category: str = ErrorCategory.SYSTEM_ERROR):
        super().__init__(message)
        self.category = category

    @property
    def is_transient(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT_ERROR


class RefreshInProgressError(TripSummaryError):
    """Another refresh holds the summary store lease"""
    category = ErrorCategory.BUSINESS_RULE_ERROR


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, message: str, error_type: str, field: str = None):
        self.message = message
        self.error_type = error_type
        self.field = field
        super().__init__(self.message)


def client_error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Code')
    return None


def cancellation_reasons(error: Exception) -> List[str]:
    """Per-item reason codes of a cancelled DynamoDB transaction"""
    if not isinstance(error, ClientError):
        return []
    return [reason.get('Code', 'None') for reason in error.response.get('CancellationReasons', [])]


def categorize_error(error: Exception) -> str:
    """Categorize errors for appropriate handling strategies"""

    if isinstance(error, TripSummaryError):
        return error.category

    if isinstance(error, (ValidationError, ValueError, TypeError)):
        return ErrorCategory.VALIDATION_ERROR

    code = client_error_code(error)
    if code in TRANSIENT_ERROR_CODES:
        return ErrorCategory.TRANSIENT_ERROR
    if code == 'ConditionalCheckFailedException':
        return ErrorCategory.BUSINESS_RULE_ERROR
    if code == 'TransactionCanceledException':
        reasons = cancellation_reasons(error)
        if 'ConditionalCheckFailed' in reasons or 'ConditionalCheckFailed' in str(error):
            return ErrorCategory.BUSINESS_RULE_ERROR
        return ErrorCategory.TRANSIENT_ERROR

    if isinstance(error, (BotoConnectionError, ConnectionError, TimeoutError)):
        return ErrorCategory.TRANSIENT_ERROR

    error_str = str(error).lower()
    if any(keyword in error_str for keyword in ['throttling', 'timeout', 'connection', 'endpoint']):
        return ErrorCategory.TRANSIENT_ERROR

    return ErrorCategory.SYSTEM_ERROR


def handle_categorized_error(error: Exception, category: str, correlation_id: str) -> Dict[str, Any]:
    """Log an error at the severity its category calls for and describe it"""

    error_details = {
        'timestamp': datetime.now().isoformat(),
        'correlation_id': correlation_id,
        'error_category': category,
        'error_type': type(error).__name__,
        'error_message': str(error),
    }

    if category == ErrorCategory.VALIDATION_ERROR:
        logger.warning(f"[{correlation_id}] Validation error: {error}")
    elif category == ErrorCategory.TRANSIENT_ERROR:
        logger.warning(f"[{correlation_id}] Transient error: {error}")
    elif category == ErrorCategory.BUSINESS_RULE_ERROR:
        logger.warning(f"[{correlation_id}] Rejected by business rule: {error}")
    else:
        logger.error(f"[{correlation_id}] {category}: {error}")

    return error_details
