"""
Registration engine: admission control for published workshops.

The workshop row carries registrationCount, the number of registrations in
status 'registered'. It is only ever changed inside a transaction that also
writes the registration row(s) responsible for the change, and every such
transaction conditions on the count it read (compare-and-swap). A concurrent
writer therefore cancels the transaction and the whole read-decide-write unit
is re-run against fresh state.
"""
from typing import Any, Dict, List, Optional, Tuple

from boto3.dynamodb.conditions import Attr, Key

from workshop_engine import dynamo, events, utils, xp_ledger
from workshop_engine.config import config
from workshop_engine.errors import (
    AlreadyRegisteredError, AtCapacityError, InvalidStateError, InvariantViolation,
    NotFoundError, NotPublishedError, ValidationError,
)
from workshop_engine.gamification import compute_level
from workshop_engine.logging import logger
from workshop_engine.models import (
    ApprovalMode, CappedMode, LevelGatedMode, OpenMode, PublicationState,
    RegistrationStatus, capacity_limit, parse_registration_mode, unreachable,
)
from workshop_engine.workshop_auth import assert_workshop_organizer, get_workshop


def get_registration(workshop_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return dynamo.get_item(config.REGISTRATIONS_TABLE, {'workshopId': workshop_id, 'userId': user_id})


def _registration_count(workshop: Dict[str, Any]) -> int:
    return int(workshop.get('registrationCount', 0))


def _is_at_capacity(mode, count: int) -> bool:
    limit = capacity_limit(mode)
    return limit is not None and count >= limit


def _publish_status_change(workshop_id: str, user_id: str, status: str, previous: Optional[str]) -> None:
    events.publish_event(events.REGISTRATION_STATUS_CHANGED, {
        'workshopId': workshop_id,
        'userId': user_id,
        'status': status,
        'previousStatus': previous,
    })


# =============================================================================
# Transaction items
# =============================================================================

def _put_registration(registration: Dict[str, Any], existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Put a registration row, conditioned on the row state that was read."""
    put = {'TableName': config.REGISTRATIONS_TABLE, 'Item': registration}
    if existing is None:
        put['ConditionExpression'] = 'attribute_not_exists(userId)'
    else:
        put['ConditionExpression'] = '#status = :observed'
        put['ExpressionAttributeNames'] = {'#status': 'status'}
        put['ExpressionAttributeValues'] = {':observed': existing['status']}
    return {'Put': put}


def _move_registration(workshop_id: str, user_id: str, from_status: str, to_status: str, now: int) -> Dict[str, Any]:
    return {
        'Update': {
            'TableName': config.REGISTRATIONS_TABLE,
            'Key': {'workshopId': workshop_id, 'userId': user_id},
            'UpdateExpression': 'SET #status = :next, updatedAt = :now',
            'ConditionExpression': '#status = :observed',
            'ExpressionAttributeNames': {'#status': 'status'},
            'ExpressionAttributeValues': {':next': to_status, ':observed': from_status, ':now': now},
        }
    }


def _workshop_count_item(workshop: Dict[str, Any], next_count: int, now: int, require_published: bool) -> Dict[str, Any]:
    """
    Compare-and-swap on registrationCount. When the count does not change the
    row is still condition-checked so the decision stays pinned to it.
    """
    observed = _registration_count(workshop)
    condition = 'registrationCount = :observed'
    values = {':observed': observed}
    if require_published:
        condition += ' AND publicationState = :published'
        values[':published'] = PublicationState.PUBLISHED

    key = {'workshopId': workshop['workshopId']}
    if next_count == observed:
        return {
            'ConditionCheck': {
                'TableName': config.WORKSHOPS_TABLE,
                'Key': key,
                'ConditionExpression': condition,
                'ExpressionAttributeValues': values,
            }
        }
    if next_count < 0:
        logger.error(f"BUG: registrationCount of {workshop['workshopId']} would become {next_count}")
        raise InvariantViolation(f"Registration count of workshop {workshop['workshopId']} cannot be negative")
    values[':next'] = next_count
    values[':now'] = now
    return {
        'Update': {
            'TableName': config.WORKSHOPS_TABLE,
            'Key': key,
            'UpdateExpression': 'SET registrationCount = :next, updatedAt = :now',
            'ConditionExpression': condition,
            'ExpressionAttributeValues': values,
        }
    }


# =============================================================================
# Operations
# =============================================================================

def _decide(mode, workshop: Dict[str, Any], user_id: str) -> Tuple[str, bool, List[Dict[str, Any]]]:
    """
    Admission decision for a mode.

    Returns:
        (status, takes_seat, extra_transaction_items)
    """
    count = _registration_count(workshop)
    if isinstance(mode, OpenMode):
        return RegistrationStatus.REGISTERED, True, []
    if isinstance(mode, CappedMode):
        if not _is_at_capacity(mode, count):
            return RegistrationStatus.REGISTERED, True, []
        if mode.waitlist_enabled:
            return RegistrationStatus.WAITLISTED, False, []
        raise AtCapacityError('Workshop is at capacity')
    if isinstance(mode, ApprovalMode):
        return RegistrationStatus.PENDING_APPROVAL, False, []
    if isinstance(mode, LevelGatedMode):
        xp_config = xp_ledger.get_xp_config()
        total = xp_ledger.get_user_total(user_id)
        guards = xp_ledger.level_guard_items(user_id, total, xp_config)
        level = compute_level(total, xp_ledger.level_base(xp_config))
        if level < mode.min_level:
            return RegistrationStatus.REJECTED, False, guards
        if _is_at_capacity(mode, count):
            raise AtCapacityError('Workshop is at capacity')
        return RegistrationStatus.REGISTERED, True, guards
    return unreachable(mode)


def register(workshop_id: str, user_id: str) -> Dict[str, Any]:
    """
    Register a user for a published workshop.

    The outcome depends on the workshop's registration mode: registered,
    waitlisted, pending_approval, or rejected (level too low). A previous
    rejected or cancelled registration is overwritten.

    Raises:
        NotFoundError, NotPublishedError, InvalidStateError,
        AlreadyRegisteredError, AtCapacityError, ConflictError
    """
    def attempt():
        workshop = get_workshop(workshop_id)
        if workshop.get('publicationState') != PublicationState.PUBLISHED:
            raise NotPublishedError('Workshop is not open for registration')
        mode = parse_registration_mode(workshop.get('registrationMode'))
        if mode is None:
            raise InvalidStateError('Registration mode is not configured')

        existing = get_registration(workshop_id, user_id)
        if existing and existing['status'] in RegistrationStatus.ACTIVE:
            raise AlreadyRegisteredError('You already have an active registration')

        status, takes_seat, guards = _decide(mode, workshop, user_id)
        now = utils.now_ms()
        registration = {
            'workshopId': workshop_id,
            'userId': user_id,
            'status': status,
            'registeredAt': now,
            'updatedAt': now,
        }
        next_count = _registration_count(workshop) + (1 if takes_seat else 0)
        items = [
            _put_registration(registration, existing),
            _workshop_count_item(workshop, next_count, now, require_published=True),
            *guards,
        ]
        dynamo.transact_write(items)
        return registration, existing

    registration, existing = dynamo.run_transaction(attempt, f"register({workshop_id}, {user_id})")
    logger.info(f"User {user_id} registration for {workshop_id}: {registration['status']}")
    _publish_status_change(workshop_id, user_id, registration['status'], existing['status'] if existing else None)
    return registration


def _oldest_waitlisted(workshop_id: str) -> Optional[Dict[str, Any]]:
    waitlisted = dynamo.query_all(
        config.REGISTRATIONS_TABLE,
        Key('workshopId').eq(workshop_id),
        filter_expression=Attr('status').eq(RegistrationStatus.WAITLISTED),
        consistent=True,
    )
    if not waitlisted:
        return None
    return min(waitlisted, key=lambda r: (r['registeredAt'], r['userId']))


def cancel_registration(workshop_id: str, user_id: str) -> Dict[str, Any]:
    """
    Cancel a registration. Cancelling an already cancelled one is a no-op.

    Releasing a seat of a capped workshop with a waitlist promotes the oldest
    waitlisted registration in the same transaction.

    Raises:
        NotFoundError, InvariantViolation, ConflictError
    """
    def attempt():
        workshop = get_workshop(workshop_id)
        registration = get_registration(workshop_id, user_id)
        if registration is None:
            raise NotFoundError('Registration not found')
        previous = registration['status']
        if previous == RegistrationStatus.CANCELLED:
            return registration, None, None

        now = utils.now_ms()
        items = [_move_registration(workshop_id, user_id, previous, RegistrationStatus.CANCELLED, now)]
        promoted = None

        if previous == RegistrationStatus.REGISTERED:
            next_count = _registration_count(workshop) - 1
            mode = parse_registration_mode(workshop.get('registrationMode'))
            if (isinstance(mode, CappedMode) and mode.waitlist_enabled
                    and 0 <= next_count < mode.max_capacity):
                promoted = _oldest_waitlisted(workshop_id)
                if promoted is not None:
                    items.append(_move_registration(
                        workshop_id, promoted['userId'],
                        RegistrationStatus.WAITLISTED, RegistrationStatus.REGISTERED, now
                    ))
                    next_count += 1
            items.append(_workshop_count_item(workshop, next_count, now, require_published=False))

        dynamo.transact_write(items)
        cancelled = {**registration, 'status': RegistrationStatus.CANCELLED, 'updatedAt': now}
        return cancelled, previous, promoted

    cancelled, previous, promoted = dynamo.run_transaction(
        attempt, f"cancel_registration({workshop_id}, {user_id})"
    )
    if previous is None:
        return cancelled

    logger.info(f"User {user_id} cancelled registration for {workshop_id} (was {previous})")
    facts = [{
        'type': events.REGISTRATION_STATUS_CHANGED,
        'workshopId': workshop_id,
        'userId': user_id,
        'status': RegistrationStatus.CANCELLED,
        'previousStatus': previous,
    }]
    if promoted is not None:
        logger.info(f"Promoted {promoted['userId']} from the waitlist of {workshop_id}")
        facts.append({
            'type': events.REGISTRATION_STATUS_CHANGED,
            'workshopId': workshop_id,
            'userId': promoted['userId'],
            'status': RegistrationStatus.REGISTERED,
            'previousStatus': RegistrationStatus.WAITLISTED,
        })
    events.publish_events(facts)
    return cancelled


def _load_pending(workshop_id: str, user_id: str, actor_id: str):
    workshop = assert_workshop_organizer(workshop_id, actor_id)
    mode = parse_registration_mode(workshop.get('registrationMode'))
    if not isinstance(mode, ApprovalMode):
        raise InvalidStateError('Registration approval is only available for approval mode')
    registration = get_registration(workshop_id, user_id)
    if registration is None:
        raise NotFoundError('Registration not found')
    if registration['status'] != RegistrationStatus.PENDING_APPROVAL:
        raise InvalidStateError('Only pending registrations can be reviewed')
    return workshop, mode, registration


def approve_registration(workshop_id: str, user_id: str, actor_id: str) -> Dict[str, Any]:
    """
    Organizer approves a pending registration, taking a seat.

    Raises:
        ForbiddenError, InvalidStateError, NotFoundError, AtCapacityError
    """
    def attempt():
        workshop, mode, registration = _load_pending(workshop_id, user_id, actor_id)
        if _is_at_capacity(mode, _registration_count(workshop)):
            raise AtCapacityError('Workshop is at capacity')
        now = utils.now_ms()
        dynamo.transact_write([
            _move_registration(workshop_id, user_id, RegistrationStatus.PENDING_APPROVAL,
                               RegistrationStatus.REGISTERED, now),
            _workshop_count_item(workshop, _registration_count(workshop) + 1, now, require_published=False),
        ])
        return {**registration, 'status': RegistrationStatus.REGISTERED, 'updatedAt': now}

    approved = dynamo.run_transaction(attempt, f"approve_registration({workshop_id}, {user_id})")
    logger.info(f"Organizer {actor_id} approved {user_id} for {workshop_id}")
    _publish_status_change(workshop_id, user_id, RegistrationStatus.REGISTERED, RegistrationStatus.PENDING_APPROVAL)
    return approved


def reject_registration(workshop_id: str, user_id: str, actor_id: str) -> Dict[str, Any]:
    """Organizer rejects a pending registration. The count is unchanged."""
    def attempt():
        _, _, registration = _load_pending(workshop_id, user_id, actor_id)
        now = utils.now_ms()
        dynamo.transact_write([
            _move_registration(workshop_id, user_id, RegistrationStatus.PENDING_APPROVAL,
                               RegistrationStatus.REJECTED, now),
        ])
        return {**registration, 'status': RegistrationStatus.REJECTED, 'updatedAt': now}

    rejected = dynamo.run_transaction(attempt, f"reject_registration({workshop_id}, {user_id})")
    logger.info(f"Organizer {actor_id} rejected {user_id} for {workshop_id}")
    _publish_status_change(workshop_id, user_id, RegistrationStatus.REJECTED, RegistrationStatus.PENDING_APPROVAL)
    return rejected


# =============================================================================
# Queries
# =============================================================================

def get_my_registration(workshop_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return get_registration(workshop_id, user_id)


def list_registrations(
    workshop_id: str,
    actor_id: str,
    status: str = None,
    limit: int = None,
    cursor: str = None
) -> Dict[str, Any]:
    """Organizer view of a workshop's registrations, optionally by status."""
    assert_workshop_organizer(workshop_id, actor_id)
    if status is not None and status not in RegistrationStatus.ALL:
        raise ValidationError(f"Unknown registration status '{status}'")
    items, next_cursor = dynamo.query_page(
        config.REGISTRATIONS_TABLE,
        Key('workshopId').eq(workshop_id),
        filter_expression=Attr('status').eq(status) if status else None,
        limit=limit,
        cursor=cursor,
    )
    return {'items': items, 'nextCursor': next_cursor}


def count_registered(workshop_id: str) -> int:
    """Count registrations in status 'registered' straight from the table."""
    rows = dynamo.query_all(
        config.REGISTRATIONS_TABLE,
        Key('workshopId').eq(workshop_id),
        filter_expression=Attr('status').eq(RegistrationStatus.REGISTERED),
        consistent=True,
    )
    return len(rows)


def verify_registration_count(workshop_id: str) -> Dict[str, Any]:
    """Audit registrationCount against the registrations table."""
    workshop = get_workshop(workshop_id)
    stored = _registration_count(workshop)
    actual = count_registered(workshop_id)
    if stored != actual:
        logger.error(f"BUG: registrationCount of {workshop_id} is {stored}, {actual} registrations are registered")
    return {'workshopId': workshop_id, 'registrationCount': stored, 'registered': actual, 'consistent': stored == actual}
