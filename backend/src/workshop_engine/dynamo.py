"""
DynamoDB utility functions: consistent reads, paginated queries and
conditional multi-item transactions.

Every engine operation follows the same shape: read the current state with
strongly consistent reads, decide in Python, then commit one
TransactWriteItems call whose conditions pin exactly the state that was read.
If another writer changed that state in between, DynamoDB cancels the
transaction and the whole unit is re-run by run_transaction().
"""
import base64
import json
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from workshop_engine.config import config
from workshop_engine.errors import ConflictError, ValidationError
from workshop_engine.logging import logger
from workshop_engine.utils import DecimalEncoder

# Initialize AWS clients lazily
_dynamodb_resource = None
_dynamodb_client = None
_serializer = TypeSerializer()


def get_dynamodb():
    """Get or create the DynamoDB service resource."""
    global _dynamodb_resource
    if _dynamodb_resource is None:
        _dynamodb_resource = boto3.resource('dynamodb', region_name=config.AWS_REGION)
    return _dynamodb_resource


def get_dynamodb_client():
    """Get or create the low-level DynamoDB client used for transactions."""
    global _dynamodb_client
    if _dynamodb_client is None:
        _dynamodb_client = boto3.client('dynamodb', region_name=config.AWS_REGION)
    return _dynamodb_client


def reset_clients() -> None:
    """Drop cached clients (new credentials, region or a test mock)."""
    global _dynamodb_resource, _dynamodb_client
    _dynamodb_resource = None
    _dynamodb_client = None


def table(table_name: str):
    return get_dynamodb().Table(table_name)


class TransactionConflict(Exception):
    """A conditional transaction was cancelled because the state moved."""

    def __init__(self, reasons: List[Dict[str, Any]]):
        super().__init__('Transaction cancelled')
        self.reasons = reasons


def to_dynamo(value: Any) -> Any:
    """Convert floats (which DynamoDB rejects) to Decimal, recursively."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value


# =============================================================================
# Reads
# =============================================================================

def get_item(table_name: str, key: Dict[str, Any], consistent: bool = True) -> Optional[Dict[str, Any]]:
    """Get a single item; strongly consistent unless told otherwise."""
    response = table(table_name).get_item(Key=key, ConsistentRead=consistent)
    return response.get('Item')


def query_all(
    table_name: str,
    key_condition: Any,
    index_name: Optional[str] = None,
    filter_expression: Optional[Any] = None,
    consistent: bool = False,
    scan_forward: bool = True
) -> List[Dict[str, Any]]:
    """
    Query a table or index and follow LastEvaluatedKey to the end.

    Args:
        table_name: Name of the DynamoDB table
        key_condition: Key condition expression
        index_name: Optional GSI name (GSIs cannot be read consistently)
        filter_expression: Optional filter expression
        consistent: Strongly consistent read (base table only)
        scan_forward: True for ascending, False for descending

    Returns:
        All items matching the query
    """
    params = {
        'KeyConditionExpression': key_condition,
        'ScanIndexForward': scan_forward,
    }
    if index_name:
        params['IndexName'] = index_name
    else:
        params['ConsistentRead'] = consistent
    if filter_expression is not None:
        params['FilterExpression'] = filter_expression

    items = []
    while True:
        response = table(table_name).query(**params)
        items.extend(response.get('Items', []))
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            return items
        params['ExclusiveStartKey'] = last_key


def query_page(
    table_name: str,
    key_condition: Any,
    index_name: Optional[str] = None,
    filter_expression: Optional[Any] = None,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    scan_forward: bool = True
) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """
    Query one page. Returns (items, next_cursor); next_cursor is None when done.
    """
    params = {
        'KeyConditionExpression': key_condition,
        'ScanIndexForward': scan_forward,
        'Limit': limit or config.DEFAULT_PAGE_SIZE,
    }
    if index_name:
        params['IndexName'] = index_name
    if filter_expression is not None:
        params['FilterExpression'] = filter_expression
    if cursor:
        params['ExclusiveStartKey'] = decode_cursor(cursor)

    response = table(table_name).query(**params)
    last_key = response.get('LastEvaluatedKey')
    return response.get('Items', []), encode_cursor(last_key) if last_key else None


def scan_all(table_name: str, filter_expression: Optional[Any] = None) -> List[Dict[str, Any]]:
    """Scan a whole table. Only used for small tables and scheduled jobs."""
    params = {}
    if filter_expression is not None:
        params['FilterExpression'] = filter_expression

    items = []
    while True:
        response = table(table_name).scan(**params)
        items.extend(response.get('Items', []))
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            return items
        params['ExclusiveStartKey'] = last_key


def encode_cursor(last_key: Dict[str, Any]) -> str:
    raw = json.dumps(last_key, cls=DecimalEncoder, sort_keys=True)
    return base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')


def decode_cursor(cursor: str) -> Dict[str, Any]:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode('ascii'))
        return json.loads(raw, parse_float=Decimal)
    except (ValueError, TypeError):
        raise ValidationError('Invalid pagination cursor')


# =============================================================================
# Writes
# =============================================================================

def batch_delete(table_name: str, keys: List[Dict[str, Any]]) -> None:
    """Delete many items; the batch writer handles the 25-item batches."""
    if not keys:
        return
    with table(table_name).batch_writer() as batch:
        for key in keys:
            batch.delete_item(Key=key)
    logger.info(f"Deleted {len(keys)} items from {table_name}")


def update_fields(
    table_name: str,
    key: Dict[str, Any],
    updates: Dict[str, Any],
    removes: Tuple[str, ...] = (),
    condition: Optional[Any] = None
) -> Dict[str, Any]:
    """
    SET (and REMOVE) top-level attributes of an item, optionally guarded by a
    condition built with boto3.dynamodb.conditions.

    Placeholders are #attrN/:valN so they never clash with the #nN/:vN ones
    boto3 generates for the condition.

    Returns:
        The item's attributes after the update

    Raises:
        ConflictError: the condition no longer held
    """
    names = {}
    values = {}
    clauses = []
    for idx, (name, value) in enumerate(updates.items()):
        names[f"#attr{idx}"] = name
        values[f":val{idx}"] = to_dynamo(value)
        clauses.append(f"#attr{idx} = :val{idx}")
    expression = f"SET {', '.join(clauses)}" if clauses else ''
    if removes:
        offset = len(updates)
        for idx, name in enumerate(removes, start=offset):
            names[f"#attr{idx}"] = name
        expression += f" REMOVE {', '.join(f'#attr{idx}' for idx in range(offset, offset + len(removes)))}"

    params = {
        'Key': key,
        'UpdateExpression': expression.strip(),
        'ExpressionAttributeNames': names,
        'ReturnValues': 'ALL_NEW',
    }
    if values:
        params['ExpressionAttributeValues'] = values
    if condition is not None:
        params['ConditionExpression'] = condition

    try:
        response = table(table_name).update_item(**params)
    except ClientError as e:
        if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
            raise ConflictError('The item was changed concurrently, please retry')
        raise
    return response.get('Attributes', {})


def _serialize_operation(operation: Dict[str, Any]) -> Dict[str, Any]:
    serialized = dict(operation)
    for field in ('Key', 'Item', 'ExpressionAttributeValues'):
        if field in serialized:
            serialized[field] = {
                name: _serializer.serialize(to_dynamo(value))
                for name, value in serialized[field].items()
            }
    return serialized


def transact_write(items: List[Dict[str, Any]]) -> None:
    """
    Commit a list of TransactItems atomically.

    Items use native Python values ({'Put': {'TableName': ..., 'Item': {...}}})
    and are serialized here.

    Raises:
        TransactionConflict: a condition failed or the items were contended
    """
    transact_items = [
        {kind: _serialize_operation(operation) for kind, operation in item.items()}
        for item in items
    ]
    try:
        get_dynamodb_client().transact_write_items(TransactItems=transact_items)
    except ClientError as e:
        if e.response['Error']['Code'] == 'TransactionCanceledException':
            raise TransactionConflict(e.response.get('CancellationReasons', []))
        raise


def run_transaction(operation: Callable[[], Any], description: str, max_attempts: int = None) -> Any:
    """
    Run a read-decide-write unit, re-running it when its transaction is
    cancelled by a concurrent writer.

    Domain errors raised by the operation propagate immediately; only
    TransactionConflict is retried.

    Raises:
        ConflictError: still conflicting after max_attempts
    """
    attempts = max_attempts or config.MAX_TRANSACTION_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TransactionConflict as e:
            logger.warning(
                f"{description}: transaction conflict on attempt {attempt}/{attempts} "
                f"(reasons: {[r.get('Code') for r in e.reasons]})"
            )
    raise ConflictError(f"{description} kept conflicting with concurrent updates, please retry")
