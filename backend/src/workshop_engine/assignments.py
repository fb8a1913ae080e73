"""
Workshop assignments: organizer-managed tasks attendees submit work for.
"""
import uuid
from typing import Any, Dict, List

from boto3.dynamodb.conditions import Key

from workshop_engine import dynamo, utils
from workshop_engine.config import config
from workshop_engine.errors import NotFoundError, ValidationError
from workshop_engine.logging import logger
from workshop_engine.models import as_int, as_str, parse_assignment_type
from workshop_engine.workshop_auth import assert_workshop_organizer

WORKSHOP_INDEX = 'byWorkshop'
SUBMISSIONS_ASSIGNMENT_INDEX = 'byAssignment'
SUBMISSIONS_WORKSHOP_USER_INDEX = 'byWorkshopUser'


def _validate_rules(deadline, xp_reward) -> None:
    if as_int(deadline, 'deadline') <= 0:
        raise ValidationError('deadline must be a valid timestamp')
    if as_int(xp_reward, 'xpReward') < 0:
        raise ValidationError('xpReward cannot be negative')


def get_assignment(assignment_id: str) -> Dict[str, Any]:
    assignment = dynamo.get_item(config.ASSIGNMENTS_TABLE, {'assignmentId': assignment_id})
    if assignment is None:
        raise NotFoundError('Assignment not found')
    return assignment


def _workshop_assignments(workshop_id: str) -> List[Dict[str, Any]]:
    rows = dynamo.query_all(config.ASSIGNMENTS_TABLE, Key('workshopId').eq(workshop_id), index_name=WORKSHOP_INDEX)
    rows.sort(key=lambda a: (a['position'], a['assignmentId']))
    return rows


def _next_position(workshop_id: str) -> int:
    positions = [int(a['position']) for a in _workshop_assignments(workshop_id)]
    return max(positions, default=-1) + 1


def create_assignment(workshop_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Organizer adds an assignment to a workshop.

    Args:
        data: title, description, deadline, xpReward, assignmentType and
              optionally position (defaults to after the last one)
    """
    assert_workshop_organizer(workshop_id, actor_id)
    _validate_rules(data.get('deadline'), data.get('xpReward'))
    assignment_type = parse_assignment_type(data.get('assignmentType'))

    position = data.get('position')
    position = as_int(position, 'position') if position is not None else _next_position(workshop_id)
    now = utils.now_ms()
    assignment = {
        'assignmentId': str(uuid.uuid4()),
        'workshopId': workshop_id,
        'title': as_str(data.get('title'), 'title'),
        'description': data.get('description') or '',
        'position': position,
        'deadline': as_int(data['deadline'], 'deadline'),
        'xpReward': as_int(data['xpReward'], 'xpReward'),
        'assignmentType': assignment_type.to_item(),
        'createdAt': now,
        'updatedAt': now,
    }
    dynamo.table(config.ASSIGNMENTS_TABLE).put_item(Item=dynamo.to_dynamo(assignment))
    logger.info(f"Created assignment {assignment['assignmentId']} for {workshop_id}")
    return assignment


def update_assignment(assignment_id: str, actor_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Organizer edits an assignment; only the given fields change."""
    assignment = get_assignment(assignment_id)
    assert_workshop_organizer(assignment['workshopId'], actor_id)

    deadline = data.get('deadline', assignment['deadline'])
    xp_reward = data.get('xpReward', assignment['xpReward'])
    _validate_rules(deadline, xp_reward)

    updates = {}
    if 'title' in data:
        updates['title'] = as_str(data['title'], 'title')
    if 'description' in data:
        updates['description'] = data['description'] or ''
    if 'position' in data:
        updates['position'] = as_int(data['position'], 'position')
    if 'deadline' in data:
        updates['deadline'] = as_int(deadline, 'deadline')
    if 'xpReward' in data:
        updates['xpReward'] = as_int(xp_reward, 'xpReward')
    if 'assignmentType' in data:
        updates['assignmentType'] = parse_assignment_type(data['assignmentType']).to_item()
    updates['updatedAt'] = utils.now_ms()

    return dynamo.update_fields(config.ASSIGNMENTS_TABLE, {'assignmentId': assignment_id}, updates)


def delete_assignment(assignment_id: str, actor_id: str) -> None:
    """Organizer deletes an assignment together with its submissions."""
    assignment = get_assignment(assignment_id)
    assert_workshop_organizer(assignment['workshopId'], actor_id)
    submissions = dynamo.query_all(
        config.SUBMISSIONS_TABLE,
        Key('assignmentId').eq(assignment_id),
        index_name=SUBMISSIONS_ASSIGNMENT_INDEX,
    )
    dynamo.batch_delete(config.SUBMISSIONS_TABLE, [{'submissionId': s['submissionId']} for s in submissions])
    dynamo.table(config.ASSIGNMENTS_TABLE).delete_item(Key={'assignmentId': assignment_id})
    logger.info(f"Deleted assignment {assignment_id} and {len(submissions)} submissions")


def list_assignments(workshop_id: str, user_id: str) -> List[Dict[str, Any]]:
    """Assignments in order, each with a summary of the caller's submission."""
    assignments = _workshop_assignments(workshop_id)
    mine = dynamo.query_all(
        config.SUBMISSIONS_TABLE,
        Key('workshopId').eq(workshop_id) & Key('userId').eq(user_id),
        index_name=SUBMISSIONS_WORKSHOP_USER_INDEX,
    )
    by_assignment = {s['assignmentId']: s for s in mine}

    result = []
    for assignment in assignments:
        submission = by_assignment.get(assignment['assignmentId'])
        result.append({
            'assignment': assignment,
            'mySubmission': None if submission is None else {
                'submissionId': submission['submissionId'],
                'status': submission['status']['type'],
                'submittedAt': submission['submittedAt'],
            },
        })
    return result


def list_workshop_assignment_ids(workshop_id: str) -> List[str]:
    return [a['assignmentId'] for a in _workshop_assignments(workshop_id)]
