"""
Daily summary store - single writer, replace-all

Every refresh writes its rows under a fresh snapshot_id and then moves the
CURRENT pointer item to it with a conditional put. Readers resolve the pointer
first and query only that snapshot, so they see the whole old set or the whole
new set. Superseded snapshots are deleted only after the pointer has moved away
from them, and snapshot ids are never reused.

A refresh that holds the lease fences its pointer flip on the lease: the LOCK
item must still name it as owner in the same transaction. A writer whose lease
expired and was taken over can no longer activate anything, so the new owner
may sweep its unactivated rows.
"""
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional, Set

from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from trip_summary.errors import (
    ErrorCategory,
    PersistenceFailure,
    RefreshInProgressError,
    cancellation_reasons,
    categorize_error,
    client_error_code,
)
from trip_summary.models import DailySummary
from trip_summary.utils import format_datetime

logger = logging.getLogger(__name__)

POINTER_KEY = {'snapshot_id': 'CURRENT', 'summary_date': '-'}
LOCK_KEY = {'snapshot_id': 'LOCK', 'summary_date': '-'}
RESERVED_IDS = {POINTER_KEY['snapshot_id'], LOCK_KEY['snapshot_id']}

# Readers retry when the pointer moves while they are querying
MAX_READ_ATTEMPTS = 5

_serializer = TypeSerializer()


def _attribute_values(values) -> dict:
    return {name: _serializer.serialize(value) for name, value in values.items()}


def new_snapshot_id(refreshed_at: datetime) -> str:
    return f"{refreshed_at.strftime('%Y%m%dT%H%M%S')}-{uuid.uuid4().hex[:8]}"


class DailySummaryStore:
    """Owner of the derived daily summary table. Only the aggregator writes here."""

    def __init__(self, dynamodb, table_name: str):
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)

    # Reads

    def active_snapshot(self) -> Optional[str]:
        response = self.table.get_item(Key=POINTER_KEY, ConsistentRead=True)
        item = response.get('Item')
        return item.get('active_snapshot') if item else None

    def read_all(self) -> List[DailySummary]:
        """Return the current summary set ordered by summary_date"""
        try:
            return self._read_active()
        except (ClientError, BotoCoreError) as e:
            raise PersistenceFailure(
                f"Could not read summaries from {self.table_name}: {e}", categorize_error(e)
            ) from e

    def _read_active(self) -> List[DailySummary]:
        for _ in range(MAX_READ_ATTEMPTS):
            snapshot_id = self.active_snapshot()
            if snapshot_id is None:
                return []

            items = list(self._query_snapshot(snapshot_id))
            if self.active_snapshot() == snapshot_id:
                summaries = [DailySummary.from_item(item) for item in items]
                return sorted(summaries, key=lambda s: s.summary_date)

            logger.info(f"Summary snapshot {snapshot_id} was replaced during read, retrying")

        raise PersistenceFailure(
            f"Summary pointer in {self.table_name} kept moving during read",
            ErrorCategory.TRANSIENT_ERROR,
        )

    # Writes

    def replace_all(self, summaries: Iterable[DailySummary], refreshed_at: datetime,
                    lease_owner: Optional[str] = None) -> str:
        """
        Atomically replace the summary set. On failure the previous set stays
        active and the partial snapshot is removed.

        With lease_owner set the pointer only moves while that owner still
        holds the lease.
        """
        summaries = list(summaries)
        snapshot_id = new_snapshot_id(refreshed_at)

        try:
            previous = self.active_snapshot()
            self._sweep_orphans(keep={previous} if previous else set())
            self._write_snapshot(snapshot_id, summaries)
            self._activate_snapshot(snapshot_id, previous, refreshed_at, len(summaries),
                                    lease_owner=lease_owner)
        except (ClientError, BotoCoreError) as e:
            category = categorize_error(e)
            self._discard(snapshot_id)
            raise PersistenceFailure(self._replace_failure_message(e, snapshot_id, lease_owner),
                                     category) from e

        logger.info(f"Activated summary snapshot {snapshot_id} with {len(summaries)} rows")

        if previous:
            self._discard(previous)
        return snapshot_id

    def _write_snapshot(self, snapshot_id: str, summaries: List[DailySummary]) -> None:
        with self.table.batch_writer() as batch:
            for summary in summaries:
                batch.put_item(Item=summary.to_item(snapshot_id))

    def _replace_failure_message(self, error: Exception, snapshot_id: str,
                                 lease_owner: Optional[str]) -> str:
        code = client_error_code(error)
        if code == 'TransactionCanceledException':
            # Reasons follow the transaction order: lease check, then pointer put
            reasons = cancellation_reasons(error)
            if reasons and reasons[0] == 'ConditionalCheckFailed':
                return f"Refresh {lease_owner} lost the lease on {self.table_name} before activating {snapshot_id}"
            if 'ConditionalCheckFailed' in reasons:
                code = 'ConditionalCheckFailedException'
        if code == 'ConditionalCheckFailedException':
            return f"Summary pointer in {self.table_name} changed under refresh {snapshot_id}"
        return f"Could not replace summaries in {self.table_name}: {error}"

    def _activate_snapshot(self, snapshot_id: str, previous: Optional[str],
                           refreshed_at: datetime, row_count: int,
                           lease_owner: Optional[str] = None) -> None:
        item = {
            **POINTER_KEY,
            'active_snapshot': snapshot_id,
            'last_updated': format_datetime(refreshed_at),
            'row_count': row_count,
        }
        if lease_owner is not None:
            self._activate_fenced(item, previous, lease_owner)
        elif previous is None:
            self.table.put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(active_snapshot)',
            )
        else:
            self.table.put_item(
                Item=item,
                ConditionExpression='active_snapshot = :previous',
                ExpressionAttributeValues={':previous': previous},
            )

    def _activate_fenced(self, item: dict, previous: Optional[str], lease_owner: str) -> None:
        """Move the pointer and check lease ownership in one transaction"""
        pointer_put = {'TableName': self.table_name, 'Item': _attribute_values(item)}
        if previous is None:
            pointer_put['ConditionExpression'] = 'attribute_not_exists(active_snapshot)'
        else:
            pointer_put['ConditionExpression'] = 'active_snapshot = :previous'
            pointer_put['ExpressionAttributeValues'] = _attribute_values({':previous': previous})

        self.table.meta.client.transact_write_items(TransactItems=[
            {
                'ConditionCheck': {
                    'TableName': self.table_name,
                    'Key': _attribute_values(LOCK_KEY),
                    'ConditionExpression': 'lock_owner = :owner',
                    'ExpressionAttributeValues': _attribute_values({':owner': lease_owner}),
                }
            },
            {'Put': pointer_put},
        ])

    def _query_snapshot(self, snapshot_id: str, keys_only: bool = False):
        query_kwargs = {
            'KeyConditionExpression': Key('snapshot_id').eq(snapshot_id),
            'ConsistentRead': True,
        }
        if keys_only:
            query_kwargs['ProjectionExpression'] = 'snapshot_id, summary_date'

        while True:
            response = self.table.query(**query_kwargs)
            yield from response.get('Items', [])
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            query_kwargs['ExclusiveStartKey'] = last_key

    def _delete_snapshot(self, snapshot_id: str) -> int:
        deleted = 0
        keys = list(self._query_snapshot(snapshot_id, keys_only=True))
        with self.table.batch_writer() as batch:
            for key in keys:
                batch.delete_item(Key={'snapshot_id': key['snapshot_id'], 'summary_date': key['summary_date']})
                deleted += 1
        return deleted

    def _discard(self, snapshot_id: str) -> None:
        """Delete an inactive snapshot; leftovers are swept by the next refresh"""
        try:
            deleted = self._delete_snapshot(snapshot_id)
            logger.info(f"Deleted {deleted} rows of inactive snapshot {snapshot_id}")
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not delete inactive snapshot {snapshot_id}, left for next sweep: {e}")

    def _sweep_orphans(self, keep: Set[str]) -> None:
        """Remove rows of snapshots that are neither active nor reserved"""
        scan_kwargs = {'ProjectionExpression': 'snapshot_id'}
        orphans = set()
        while True:
            response = self.table.scan(**scan_kwargs)
            for item in response.get('Items', []):
                snapshot_id = item['snapshot_id']
                if snapshot_id not in RESERVED_IDS and snapshot_id not in keep:
                    orphans.add(snapshot_id)
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            scan_kwargs['ExclusiveStartKey'] = last_key

        for snapshot_id in sorted(orphans):
            logger.warning(f"Sweeping orphaned summary snapshot {snapshot_id}")
            self._delete_snapshot(snapshot_id)

    # Single-writer lease

    def acquire_lease(self, owner: str, ttl_seconds: int) -> bool:
        now = int(time.time())
        try:
            self.table.put_item(
                Item={**LOCK_KEY, 'lock_owner': owner, 'expires_at': now + ttl_seconds},
                ConditionExpression='attribute_not_exists(snapshot_id) OR expires_at < :now',
                ExpressionAttributeValues={':now': now},
            )
            return True
        except (ClientError, BotoCoreError) as e:
            if client_error_code(e) == 'ConditionalCheckFailedException':
                return False
            raise PersistenceFailure(
                f"Could not acquire refresh lease on {self.table_name}: {e}", categorize_error(e)
            ) from e

    def release_lease(self, owner: str) -> None:
        try:
            self.table.delete_item(
                Key=LOCK_KEY,
                ConditionExpression='lock_owner = :owner',
                ExpressionAttributeValues={':owner': owner},
            )
        except (ClientError, BotoCoreError) as e:
            if client_error_code(e) != 'ConditionalCheckFailedException':
                raise PersistenceFailure(
                    f"Could not release refresh lease on {self.table_name}: {e}", categorize_error(e)
                ) from e
            logger.warning(f"Refresh lease for {owner} expired before release")

    @contextmanager
    def lease(self, owner: str, ttl_seconds: int = 300, wait_seconds: float = 30.0,
              poll_seconds: float = 0.5):
        """Hold the single-writer lease, waiting up to wait_seconds for it"""
        deadline = time.monotonic() + wait_seconds
        while not self.acquire_lease(owner, ttl_seconds):
            if time.monotonic() >= deadline:
                raise RefreshInProgressError(
                    f"Another refresh holds the lease on {self.table_name}"
                )
            time.sleep(poll_seconds)

        logger.info(f"[{owner}] Acquired refresh lease on {self.table_name}")
        try:
            yield owner
        finally:
            # An unreleased lease lapses after ttl_seconds
            try:
                self.release_lease(owner)
            except PersistenceFailure as e:
                logger.error(f"[{owner}] {e}; lease expires in at most {ttl_seconds}s")
