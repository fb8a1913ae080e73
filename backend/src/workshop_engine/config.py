"""
Configuration module for the workshop engine.
Loads all environment variables needed by the Lambda functions.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    WORKSHOPS_TABLE = os.environ.get('WORKSHOPS_TABLE', '')
    REGISTRATIONS_TABLE = os.environ.get('REGISTRATIONS_TABLE', '')
    ATTENDANCE_TABLE = os.environ.get('ATTENDANCE_TABLE', '')
    ASSIGNMENTS_TABLE = os.environ.get('ASSIGNMENTS_TABLE', '')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', '')
    RESOURCES_TABLE = os.environ.get('RESOURCES_TABLE', '')
    USERS_TABLE = os.environ.get('USERS_TABLE', '')
    XP_TRANSACTIONS_TABLE = os.environ.get('XP_TRANSACTIONS_TABLE', '')
    XP_CONFIG_TABLE = os.environ.get('XP_CONFIG_TABLE', '')
    XP_MULTIPLIERS_TABLE = os.environ.get('XP_MULTIPLIERS_TABLE', '')
    LEVEL_TITLES_TABLE = os.environ.get('LEVEL_TITLES_TABLE', '')
    COMMUNITIES_TABLE = os.environ.get('COMMUNITIES_TABLE', '')
    MEMBERSHIPS_TABLE = os.environ.get('MEMBERSHIPS_TABLE', '')
    QUIZ_SUBMISSIONS_TABLE = os.environ.get('QUIZ_SUBMISSIONS_TABLE', '')

    # S3 Buckets
    MEDIA_BUCKET = os.environ.get('MEDIA_BUCKET', '')
    UPLOAD_URL_EXPIRATION = int(os.environ.get('UPLOAD_URL_EXPIRATION', '900'))
    DOWNLOAD_URL_EXPIRATION = int(os.environ.get('DOWNLOAD_URL_EXPIRATION', '3600'))

    # SQS Queues
    NOTIFICATIONS_QUEUE_URL = os.environ.get('NOTIFICATIONS_QUEUE_URL', '')

    # Gamification
    WORKSHOP_ATTENDANCE_XP = int(os.environ.get('WORKSHOP_ATTENDANCE_XP', '25'))
    DEFAULT_LEVEL_BASE = int(os.environ.get('DEFAULT_LEVEL_BASE', '100'))

    # Workshop rules
    CHECK_IN_CODE_LENGTH = int(os.environ.get('CHECK_IN_CODE_LENGTH', '6'))
    MAX_FILE_RESOURCES = int(os.environ.get('MAX_FILE_RESOURCES', '5'))  # Free plan limit
    DEFAULT_PAGE_SIZE = int(os.environ.get('DEFAULT_PAGE_SIZE', '20'))

    # Optimistic concurrency: how many times a read-decide-write unit is re-run
    MAX_TRANSACTION_ATTEMPTS = int(os.environ.get('MAX_TRANSACTION_ATTEMPTS', '5'))


config = Config()
