"""
Shared fixtures: in-memory AWS (moto) with every table, the media bucket and
the notifications queue, a controllable clock and seed helpers.
"""
import json
import os
from unittest.mock import patch

# Config is read at import time, so the environment comes first
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_SECURITY_TOKEN', 'testing')
os.environ.setdefault('AWS_SESSION_TOKEN', 'testing')
os.environ['AWS_REGION'] = 'us-east-1'
os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'
os.environ.update({
    'WORKSHOPS_TABLE': 'workshops',
    'REGISTRATIONS_TABLE': 'workshop-registrations',
    'ATTENDANCE_TABLE': 'workshop-attendance',
    'ASSIGNMENTS_TABLE': 'workshop-assignments',
    'SUBMISSIONS_TABLE': 'assignment-submissions',
    'RESOURCES_TABLE': 'workshop-resources',
    'USERS_TABLE': 'users',
    'XP_TRANSACTIONS_TABLE': 'xp-transactions',
    'XP_CONFIG_TABLE': 'xp-config',
    'XP_MULTIPLIERS_TABLE': 'xp-multipliers',
    'LEVEL_TITLES_TABLE': 'level-titles',
    'COMMUNITIES_TABLE': 'communities',
    'MEMBERSHIPS_TABLE': 'org-memberships',
    'QUIZ_SUBMISSIONS_TABLE': 'quiz-submissions',
    'MEDIA_BUCKET': 'workshop-media',
})

import boto3  # noqa: E402
import pytest  # noqa: E402
from moto import mock_aws  # noqa: E402

from workshop_engine import blob_store, dynamo, events  # noqa: E402
from workshop_engine.config import config  # noqa: E402
from workshop_engine.models import PublicationState  # noqa: E402

HOUR = 60 * 60 * 1000
NOW = 1_767_225_600_000  # 2026-01-01T00:00:00Z

COMMUNITY_ID = 'community-1'
ORG_ID = 'org-1'
ORGANIZER = 'organizer-1'


def _table(name, hash_key, range_key=None, indexes=()):
    attributes = {hash_key[0]: hash_key[1]}
    schema = [{'AttributeName': hash_key[0], 'KeyType': 'HASH'}]
    if range_key:
        attributes[range_key[0]] = range_key[1]
        schema.append({'AttributeName': range_key[0], 'KeyType': 'RANGE'})

    gsis = []
    for index_name, index_hash, index_range in indexes:
        attributes[index_hash[0]] = index_hash[1]
        index_schema = [{'AttributeName': index_hash[0], 'KeyType': 'HASH'}]
        if index_range:
            attributes[index_range[0]] = index_range[1]
            index_schema.append({'AttributeName': index_range[0], 'KeyType': 'RANGE'})
        gsis.append({
            'IndexName': index_name,
            'KeySchema': index_schema,
            'Projection': {'ProjectionType': 'ALL'},
        })

    params = {
        'TableName': name,
        'KeySchema': schema,
        'AttributeDefinitions': [{'AttributeName': k, 'AttributeType': t} for k, t in attributes.items()],
        'BillingMode': 'PAY_PER_REQUEST',
    }
    if gsis:
        params['GlobalSecondaryIndexes'] = gsis
    return params


TABLES = [
    _table(config.WORKSHOPS_TABLE, ('workshopId', 'S'), indexes=[
        ('byCommunity', ('communityId', 'S'), ('startDate', 'N')),
        ('byPublicationState', ('publicationState', 'S'), ('startDate', 'N')),
    ]),
    _table(config.REGISTRATIONS_TABLE, ('workshopId', 'S'), ('userId', 'S')),
    _table(config.ATTENDANCE_TABLE, ('workshopId', 'S'), ('userId', 'S')),
    _table(config.ASSIGNMENTS_TABLE, ('assignmentId', 'S'), indexes=[
        ('byWorkshop', ('workshopId', 'S'), None),
    ]),
    _table(config.SUBMISSIONS_TABLE, ('submissionId', 'S'), indexes=[
        ('byAssignment', ('assignmentId', 'S'), None),
        ('byWorkshopUser', ('workshopId', 'S'), ('userId', 'S')),
    ]),
    _table(config.RESOURCES_TABLE, ('resourceId', 'S'), indexes=[
        ('byWorkshop', ('workshopId', 'S'), None),
    ]),
    _table(config.USERS_TABLE, ('userId', 'S')),
    _table(config.XP_TRANSACTIONS_TABLE, ('transactionId', 'S'), indexes=[
        ('byUser', ('userId', 'S'), ('createdAt', 'N')),
    ]),
    _table(config.XP_CONFIG_TABLE, ('configId', 'S')),
    _table(config.XP_MULTIPLIERS_TABLE, ('multiplierId', 'S')),
    _table(config.LEVEL_TITLES_TABLE, ('titleId', 'S')),
    _table(config.COMMUNITIES_TABLE, ('communityId', 'S')),
    _table(config.MEMBERSHIPS_TABLE, ('orgId', 'S'), ('userId', 'S')),
    _table(config.QUIZ_SUBMISSIONS_TABLE, ('quizSubmissionId', 'S')),
]


class Clock:
    """Stands in for utils.now_ms so tests control time."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    fake = Clock(NOW)
    with patch('workshop_engine.utils.now_ms', fake):
        yield fake


@pytest.fixture
def aws(monkeypatch, clock):
    """Fresh in-memory AWS for one test."""
    with mock_aws():
        dynamo.reset_clients()
        blob_store.reset_client()
        events.reset_client()

        client = boto3.client('dynamodb', region_name=config.AWS_REGION)
        for params in TABLES:
            client.create_table(**params)

        boto3.client('s3', region_name=config.AWS_REGION).create_bucket(Bucket=config.MEDIA_BUCKET)
        queue_url = boto3.client('sqs', region_name=config.AWS_REGION).create_queue(
            QueueName='workshop-notifications'
        )['QueueUrl']
        monkeypatch.setattr(config, 'NOTIFICATIONS_QUEUE_URL', queue_url)

        _put(config.COMMUNITIES_TABLE, {
            'communityId': COMMUNITY_ID,
            'orgId': ORG_ID,
            'name': 'Python Guild',
            'slug': 'python-guild',
        })
        _put(config.MEMBERSHIPS_TABLE, {'orgId': ORG_ID, 'userId': ORGANIZER})
        yield

    dynamo.reset_clients()
    blob_store.reset_client()
    events.reset_client()


def _put(table_name, item):
    dynamo.table(table_name).put_item(Item=dynamo.to_dynamo(item))


@pytest.fixture
def put_item(aws):
    return _put


@pytest.fixture
def make_workshop(aws, clock):
    """
    Seed a workshop directly. By default it is published and live (started an
    hour ago, ends in an hour) with open registration.
    """
    counter = {'n': 0}

    def _make(mode=None, **overrides):
        counter['n'] += 1
        workshop = {
            'workshopId': f"workshop-{counter['n']}",
            'communityId': COMMUNITY_ID,
            'creatorId': ORGANIZER,
            'title': f"Workshop {counter['n']}",
            'titleSearch': f"workshop {counter['n']}",
            'description': '',
            'startDate': clock.now - HOUR,
            'endDate': clock.now + HOUR,
            'location': {'type': 'online', 'link': 'https://meet.example.com/room'},
            'publicationState': PublicationState.PUBLISHED,
            'registrationMode': mode or {'type': 'open'},
            'coHosts': [],
            'tags': [],
            'registrationCount': 0,
            'createdAt': clock.now,
            'updatedAt': clock.now,
        }
        workshop.update(overrides)
        _put(config.WORKSHOPS_TABLE, workshop)
        return workshop

    return _make


@pytest.fixture
def upload_blob(aws):
    """Put an object in the media bucket and return its blob id."""
    def _upload(blob_id, size):
        boto3.client('s3', region_name=config.AWS_REGION).put_object(
            Bucket=config.MEDIA_BUCKET, Key=blob_id, Body=b'x' * size
        )
        return blob_id

    return _upload


@pytest.fixture
def published_events(aws):
    """Drain the notifications queue and return the decoded facts."""
    def _drain():
        sqs = boto3.client('sqs', region_name=config.AWS_REGION)
        received = []
        while True:
            response = sqs.receive_message(
                QueueUrl=config.NOTIFICATIONS_QUEUE_URL, MaxNumberOfMessages=10
            )
            messages = response.get('Messages', [])
            if not messages:
                return received
            for message in messages:
                received.append(json.loads(message['Body']))
                sqs.delete_message(
                    QueueUrl=config.NOTIFICATIONS_QUEUE_URL, ReceiptHandle=message['ReceiptHandle']
                )

    return _drain


def get_row(table_name, key):
    return dynamo.get_item(table_name, key)


def api_event(user_id=None, path=None, body=None, query=None, method='POST', groups=None):
    """Minimal API Gateway proxy event."""
    event = {
        'httpMethod': method,
        'pathParameters': path or {},
        'queryStringParameters': query,
        'body': json.dumps(body) if isinstance(body, dict) else body,
        'requestContext': {},
    }
    if user_id:
        claims = {'sub': user_id}
        if groups:
            claims['cognito:groups'] = ','.join(groups)
        event['requestContext'] = {'authorizer': {'claims': claims}}
    return event
