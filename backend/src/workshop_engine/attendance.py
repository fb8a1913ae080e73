"""
Attendance engine: check-in codes, self check-in, organizer manual check-in.

A check-in writes the attendance row and pays the attendance XP in one
transaction. Check-in is idempotent per (workshop, user), and the XP ledger
id for attendance is derived from the pair, so removing an attendance and
checking in again never pays twice.
"""
import secrets
import uuid
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Key

from workshop_engine import dynamo, events, utils, xp_ledger
from workshop_engine.config import config
from workshop_engine.errors import (
    InvalidCodeError, NotFoundError, NotLiveError, NotPublishedError, NotRegisteredError, ValidationError,
)
from workshop_engine.logging import logger
from workshop_engine.models import AttendanceMethod, AttendanceSource, PublicationState, RegistrationStatus
from workshop_engine.registration import get_registration
from workshop_engine.workshop_auth import assert_workshop_organizer, get_workshop

# No I, O, 0 or 1: codes are read off a screen
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


def create_check_in_code(length: int = None) -> str:
    length = length or config.CHECK_IN_CODE_LENGTH
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code) -> str:
    """
    Code as typed by the attendee, trimmed and upper-cased. All-digit codes may
    arrive as JSON numbers.
    """
    if code is None:
        return ''
    if isinstance(code, bool) or not isinstance(code, (str, int)):
        raise ValidationError('code must be a string')
    return str(code).strip().upper()


def assert_workshop_live(workshop: Dict[str, Any], now: int) -> None:
    """A workshop is live while published and between its start and end."""
    if workshop.get('publicationState') != PublicationState.PUBLISHED:
        raise NotPublishedError('Workshop must be published')
    if now < workshop['startDate'] or now > workshop['endDate']:
        raise NotLiveError('Workshop is not live')


def get_attendance(workshop_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return dynamo.get_item(config.ATTENDANCE_TABLE, {'workshopId': workshop_id, 'userId': user_id})


def _assert_registered(workshop_id: str, user_id: str) -> None:
    registration = get_registration(workshop_id, user_id)
    if not registration or registration['status'] != RegistrationStatus.REGISTERED:
        raise NotRegisteredError('User must be registered to check in')


# =============================================================================
# Check-in codes
# =============================================================================

def _store_code(workshop_id: str, actor_id: str) -> str:
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    now = utils.now_ms()
    assert_workshop_live(workshop, now)
    code = create_check_in_code()
    dynamo.table(config.WORKSHOPS_TABLE).update_item(
        Key={'workshopId': workshop_id},
        UpdateExpression='SET checkInCode = :code, updatedAt = :now',
        ExpressionAttributeValues={':code': code, ':now': now}
    )
    logger.info(f"New check-in code for {workshop_id} set by {actor_id}")
    return code


def generate_check_in_code(workshop_id: str, actor_id: str) -> str:
    """Organizer activates check-in for a live workshop and gets the code."""
    return _store_code(workshop_id, actor_id)


def refresh_check_in_code(workshop_id: str, actor_id: str) -> str:
    """Replace the active code; the previous one stops working immediately."""
    return _store_code(workshop_id, actor_id)


# =============================================================================
# Check-in
# =============================================================================

def _check_in(workshop_id: str, user_id: str, method: str, code: str = None) -> Dict[str, Any]:
    def attempt():
        workshop = get_workshop(workshop_id)
        now = utils.now_ms()
        assert_workshop_live(workshop, now)
        _assert_registered(workshop_id, user_id)

        workshop_check = {
            'TableName': config.WORKSHOPS_TABLE,
            'Key': {'workshopId': workshop_id},
            'ConditionExpression': 'publicationState = :published',
            'ExpressionAttributeValues': {':published': PublicationState.PUBLISHED},
        }
        if method == AttendanceMethod.CODE:
            active_code = workshop.get('checkInCode')
            if not active_code:
                raise InvalidCodeError('Check-in code is not active')
            if normalize_code(code) != active_code.upper():
                raise InvalidCodeError('Invalid check-in code')
            workshop_check['ConditionExpression'] += ' AND checkInCode = :code'
            workshop_check['ExpressionAttributeValues'][':code'] = active_code

        existing = get_attendance(workshop_id, user_id)
        if existing is not None:
            return existing, None, False

        attendance = {
            'workshopId': workshop_id,
            'userId': user_id,
            'attendanceId': str(uuid.uuid4()),
            'checkedInAt': now,
            'method': method,
        }
        award = xp_ledger.build_award(
            user_id,
            config.WORKSHOP_ATTENDANCE_XP,
            AttendanceSource(workshop_id=workshop_id, attendance_id=attendance['attendanceId']),
            now=now,
        )
        items = [
            {
                'Put': {
                    'TableName': config.ATTENDANCE_TABLE,
                    'Item': attendance,
                    'ConditionExpression': 'attribute_not_exists(userId)',
                }
            },
            {
                'ConditionCheck': {
                    'TableName': config.REGISTRATIONS_TABLE,
                    'Key': {'workshopId': workshop_id, 'userId': user_id},
                    'ConditionExpression': '#status = :registered',
                    'ExpressionAttributeNames': {'#status': 'status'},
                    'ExpressionAttributeValues': {':registered': RegistrationStatus.REGISTERED},
                }
            },
            {'ConditionCheck': workshop_check},
        ]
        if award is not None:
            items.extend(award.items)
        dynamo.transact_write(items)
        return attendance, award, True

    attendance, award, created = dynamo.run_transaction(attempt, f"check_in({workshop_id}, {user_id})")
    if created:
        logger.info(f"User {user_id} checked in to {workshop_id} ({method})")
        events.publish_event(events.CHECKED_IN, {
            'workshopId': workshop_id,
            'userId': user_id,
            'method': method,
            'xpAwarded': award.final_xp if award else 0,
        })
        xp_ledger.announce_level_up(award)
    return attendance


def check_in(workshop_id: str, user_id: str, code: str) -> Dict[str, Any]:
    """
    Self check-in with the workshop's active code.

    Returns:
        The attendance row (the existing one when already checked in)

    Raises:
        NotFoundError, NotPublishedError, NotLiveError, NotRegisteredError,
        InvalidCodeError
    """
    return _check_in(workshop_id, user_id, AttendanceMethod.CODE, code)


def manual_check_in(workshop_id: str, target_user_id: str, actor_id: str) -> Dict[str, Any]:
    """Organizer checks in a registered user without a code."""
    assert_workshop_organizer(workshop_id, actor_id)
    return _check_in(workshop_id, target_user_id, AttendanceMethod.MANUAL)


def remove_attendance(workshop_id: str, target_user_id: str, actor_id: str) -> None:
    """
    Organizer removes an attendance row. XP already paid for it stays in the
    ledger, and a later check-in does not pay again.
    """
    assert_workshop_organizer(workshop_id, actor_id)
    if get_attendance(workshop_id, target_user_id) is None:
        raise NotFoundError('Attendance record not found')
    dynamo.table(config.ATTENDANCE_TABLE).delete_item(
        Key={'workshopId': workshop_id, 'userId': target_user_id}
    )
    logger.info(f"Organizer {actor_id} removed attendance of {target_user_id} at {workshop_id}")


# =============================================================================
# Queries
# =============================================================================

def list_attendees(workshop_id: str, actor_id: str) -> List[Dict[str, Any]]:
    """Organizer view of attendance, in check-in order."""
    assert_workshop_organizer(workshop_id, actor_id)
    rows = dynamo.query_all(config.ATTENDANCE_TABLE, Key('workshopId').eq(workshop_id))
    rows.sort(key=lambda row: row['checkedInAt'])
    return [
        {
            'attendanceId': row['attendanceId'],
            'userId': row['userId'],
            'checkedInAt': row['checkedInAt'],
            'method': row['method'],
        }
        for row in rows
    ]


def get_my_attendance(workshop_id: str, user_id: str) -> Dict[str, Any]:
    attendance = get_attendance(workshop_id, user_id)
    return {'checkedIn': attendance is not None, 'attendance': attendance}
