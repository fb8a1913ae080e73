"""
Notification facts, published to SQS after the state change has committed.

Delivery (email, push, in-app) is done by the consumers of the queue.
Publishing is best effort: a failure here never undoes or fails the
operation that produced the fact.
"""
import json
from typing import Any, Dict, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from workshop_engine.config import config
from workshop_engine.logging import logger
from workshop_engine.utils import DecimalEncoder, now_ms

WORKSHOP_ANNOUNCED = 'workshop_announced'
REGISTRATION_STATUS_CHANGED = 'registration_status_changed'
CHECKED_IN = 'checked_in'
SUBMISSION_REVIEWED = 'submission_reviewed'
LEVEL_UP = 'level_up'

_sqs_client = None


def get_sqs_client():
    global _sqs_client
    if _sqs_client is None:
        _sqs_client = boto3.client('sqs', region_name=config.AWS_REGION)
    return _sqs_client


def reset_client() -> None:
    global _sqs_client
    _sqs_client = None


def publish_event(event_type: str, payload: Dict[str, Any]) -> bool:
    """
    Send a single notification fact to the notifications queue.

    Args:
        event_type: One of the event type constants above
        payload: Event data (will be JSON serialized)

    Returns:
        True if sent, False if not configured or sending failed
    """
    if not config.NOTIFICATIONS_QUEUE_URL:
        return False
    message = {'type': event_type, 'occurredAt': now_ms(), **payload}
    try:
        get_sqs_client().send_message(
            QueueUrl=config.NOTIFICATIONS_QUEUE_URL,
            MessageBody=json.dumps(message, cls=DecimalEncoder)
        )
        logger.info(f"Published {event_type} event")
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error publishing {event_type} event: {e}")
        return False


def publish_events(events: List[Dict[str, Any]]) -> bool:
    """
    Send several facts in SQS batches (max 10 per batch).

    Each entry is {'type': ..., **payload}.
    """
    if not config.NOTIFICATIONS_QUEUE_URL or not events:
        return False
    occurred_at = now_ms()
    try:
        for i in range(0, len(events), 10):
            batch = events[i:i + 10]
            entries = [
                {
                    'Id': str(idx),
                    'MessageBody': json.dumps({'occurredAt': occurred_at, **msg}, cls=DecimalEncoder)
                }
                for idx, msg in enumerate(batch)
            ]
            response = get_sqs_client().send_message_batch(
                QueueUrl=config.NOTIFICATIONS_QUEUE_URL,
                Entries=entries
            )
            if response.get('Failed'):
                logger.warning(f"Some events failed: {response['Failed']}")
                return False
        logger.info(f"Published {len(events)} events")
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error publishing event batch: {e}")
        return False
