"""
Table definitions for the trip and summary stores
"""
import logging

from botocore.exceptions import ClientError

from trip_summary.config import Settings

logger = logging.getLogger(__name__)


def trip_table_definition(table_name: str) -> dict:
    return {
        'TableName': table_name,
        'KeySchema': [{'AttributeName': 'request_id', 'KeyType': 'HASH'}],
        'AttributeDefinitions': [{'AttributeName': 'request_id', 'AttributeType': 'N'}],
        'BillingMode': 'PAY_PER_REQUEST',
    }


def summary_table_definition(table_name: str) -> dict:
    # snapshot_id partitions rows by refresh run; pointer and lock items share the table
    return {
        'TableName': table_name,
        'KeySchema': [
            {'AttributeName': 'snapshot_id', 'KeyType': 'HASH'},
            {'AttributeName': 'summary_date', 'KeyType': 'RANGE'},
        ],
        'AttributeDefinitions': [
            {'AttributeName': 'snapshot_id', 'AttributeType': 'S'},
            {'AttributeName': 'summary_date', 'AttributeType': 'S'},
        ],
        'BillingMode': 'PAY_PER_REQUEST',
    }


def create_table_if_missing(dynamodb, definition: dict):
    """Create a table and wait for it; an existing table is returned as is"""
    table_name = definition['TableName']
    try:
        table = dynamodb.create_table(**definition)
        table.wait_until_exists()
        logger.info(f"Created table {table_name}")
        return table
    except ClientError as e:
        if e.response['Error']['Code'] != 'ResourceInUseException':
            raise
        logger.info(f"Table {table_name} already exists")
        return dynamodb.Table(table_name)


def create_tables(dynamodb, settings: Settings):
    trips = create_table_if_missing(dynamodb, trip_table_definition(settings.trip_table_name))
    summary = create_table_if_missing(dynamodb, summary_table_definition(settings.summary_table_name))
    return trips, summary
