"""
Assignment submissions: intake, validation against the assignment type, and
organizer review.

There is at most one submission per (assignment, user): its id is derived
from the pair. Approval is final and pays the assignment's XP reward in the
same transaction that records the decision.
"""
import uuid
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Key

from workshop_engine import blob_store, dynamo, events, utils, xp_ledger
from workshop_engine.assignments import (
    SUBMISSIONS_ASSIGNMENT_INDEX, SUBMISSIONS_WORKSHOP_USER_INDEX, get_assignment,
)
from workshop_engine.attendance import get_attendance
from workshop_engine.config import config
from workshop_engine.errors import (
    AlreadyApprovedError, DeadlinePassedError, NotCheckedInError, NotFoundError,
    NotRegisteredError, ValidationError,
)
from workshop_engine.logging import logger
from workshop_engine.models import (
    Approved, AssignmentSource, FileUploadAssignment, FileUploadContent, LinkAssignment,
    LinkContent, QuizAssignment, QuizContent,
    RegistrationStatus, Rejected, ReviewDecision, Submitted, SubmissionContent,
    parse_assignment_type, parse_submission_content, parse_submission_status, unreachable,
)
from workshop_engine.registration import get_registration
from workshop_engine.workshop_auth import assert_workshop_organizer

_SUBMISSION_NAMESPACE = uuid.UUID('5d1f0c8e-7a44-4f57-b2a9-93c6e1d0a2b7')

_STATUS_NAMES = {'#status': 'status', '#type': 'type'}


def submission_id_for(assignment_id: str, user_id: str) -> str:
    return str(uuid.uuid5(_SUBMISSION_NAMESPACE, f"{assignment_id}:{user_id}"))


def get_submission(submission_id: str) -> Optional[Dict[str, Any]]:
    return dynamo.get_item(config.SUBMISSIONS_TABLE, {'submissionId': submission_id})


def _assert_registered_and_attended(workshop_id: str, user_id: str) -> None:
    registration = get_registration(workshop_id, user_id)
    if not registration or registration['status'] != RegistrationStatus.REGISTERED:
        raise NotRegisteredError('You must be registered for this workshop')
    if get_attendance(workshop_id, user_id) is None:
        raise NotCheckedInError('You must check in before submitting assignments')


# =============================================================================
# Content validation
# =============================================================================

def _validate_file_upload(assignment_type: FileUploadAssignment, content) -> None:
    if assignment_type.accepted_formats:
        name = content.file_name.lower()
        if not any(name.endswith(fmt.lower()) for fmt in assignment_type.accepted_formats):
            raise ValidationError('File format is not allowed for this assignment')
    metadata = blob_store.get_metadata(content.file_id)
    if metadata is None:
        raise ValidationError('Uploaded file not found')
    if assignment_type.max_file_size_mb is not None:
        if metadata['size'] > assignment_type.max_file_size_mb * 1024 * 1024:
            raise ValidationError('Uploaded file exceeds maximum allowed size')


def _validate_quiz(assignment: Dict[str, Any], assignment_type: QuizAssignment, content, user_id: str) -> None:
    quiz_submission = dynamo.get_item(
        config.QUIZ_SUBMISSIONS_TABLE, {'quizSubmissionId': content.quiz_submission_id}
    )
    if quiz_submission is None:
        raise ValidationError('Quiz submission not found')
    if quiz_submission.get('userId') != user_id:
        raise ValidationError('Quiz submission does not belong to the current user')
    if quiz_submission.get('quizId') != assignment_type.quiz_id:
        raise ValidationError('Quiz submission does not match assignment quiz')
    source = quiz_submission.get('source') or {}
    if source.get('type') != 'workshop':
        raise ValidationError('Quiz submission source is not a workshop')
    if source.get('workshopId') != assignment['workshopId']:
        raise ValidationError('Quiz submission workshop does not match assignment workshop')


def validate_content(assignment: Dict[str, Any], content: SubmissionContent, user_id: str) -> None:
    """
    Check submitted content against the assignment's type.

    Raises:
        ValidationError
    """
    assignment_type = parse_assignment_type(assignment['assignmentType'])
    if content.type != assignment_type.type:
        raise ValidationError('Submission type does not match assignment type')
    if isinstance(assignment_type, FileUploadAssignment):
        _validate_file_upload(assignment_type, content)
    elif isinstance(assignment_type, QuizAssignment):
        _validate_quiz(assignment, assignment_type, content, user_id)
    elif isinstance(assignment_type, LinkAssignment):
        pass
    else:
        unreachable(assignment_type)


def _observed_state_condition(existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Condition pinning a submission row to the state that was read."""
    if existing is None:
        return {'ConditionExpression': 'attribute_not_exists(submissionId)'}
    return {
        'ConditionExpression': '#status.#type = :observedType AND submittedAt = :observedAt',
        'ExpressionAttributeNames': dict(_STATUS_NAMES),
        'ExpressionAttributeValues': {
            ':observedType': existing['status']['type'],
            ':observedAt': existing['submittedAt'],
        },
    }


# =============================================================================
# Operations
# =============================================================================

def submit(assignment_id: str, user_id: str, content) -> Dict[str, Any]:
    """
    Submit (or resubmit) work for an assignment.

    A previous submitted or rejected submission is replaced and goes back to
    'submitted'; an approved one cannot be replaced.

    Raises:
        NotFoundError, NotRegisteredError, NotCheckedInError,
        DeadlinePassedError, ValidationError, AlreadyApprovedError
    """
    if not isinstance(content, (QuizContent, FileUploadContent, LinkContent)):
        content = parse_submission_content(content)

    def attempt():
        assignment = get_assignment(assignment_id)
        workshop_id = assignment['workshopId']
        _assert_registered_and_attended(workshop_id, user_id)

        now = utils.now_ms()
        if now > assignment['deadline']:
            raise DeadlinePassedError('Assignment deadline has passed')
        validate_content(assignment, content, user_id)

        submission_id = submission_id_for(assignment_id, user_id)
        existing = get_submission(submission_id)
        if existing and existing['status']['type'] == Approved.type:
            raise AlreadyApprovedError('An approved submission already exists for this assignment')

        submission = {
            'submissionId': submission_id,
            'assignmentId': assignment_id,
            'workshopId': workshop_id,
            'userId': user_id,
            'submittedAt': now,
            'content': content.to_item(),
            'status': Submitted().to_item(),
        }
        dynamo.transact_write([
            {
                'Put': {
                    'TableName': config.SUBMISSIONS_TABLE,
                    'Item': submission,
                    **_observed_state_condition(existing),
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
            {
                'ConditionCheck': {
                    'TableName': config.ATTENDANCE_TABLE,
                    'Key': {'workshopId': workshop_id, 'userId': user_id},
                    'ConditionExpression': 'attribute_exists(userId)',
                }
            },
        ])
        return submission

    submission = dynamo.run_transaction(attempt, f"submit({assignment_id}, {user_id})")
    logger.info(f"User {user_id} submitted {content.type} for assignment {assignment_id}")
    return submission


def review(submission_id: str, actor_id: str, decision: str, feedback: str = None) -> Dict[str, Any]:
    """
    Organizer approves or rejects a submission.

    Approving pays assignment.xpReward exactly once. An approved submission
    can be neither approved again nor rejected.

    Raises:
        NotFoundError, ForbiddenError, ValidationError, AlreadyApprovedError
    """
    if decision not in (ReviewDecision.APPROVED, ReviewDecision.REJECTED):
        raise ValidationError("decision must be 'approved' or 'rejected'")

    def attempt():
        submission = get_submission(submission_id)
        if submission is None:
            raise NotFoundError('Submission not found')
        assignment = get_assignment(submission['assignmentId'])
        assert_workshop_organizer(assignment['workshopId'], actor_id)

        if isinstance(parse_submission_status(submission['status']), Approved):
            raise AlreadyApprovedError('Submission is already approved')

        now = utils.now_ms()
        award = None
        if decision == ReviewDecision.APPROVED:
            status = Approved(
                reviewed_at=now,
                reviewed_by=actor_id,
                xp_awarded=int(assignment['xpReward']),
                feedback=feedback,
            )
            award = xp_ledger.build_award(
                submission['userId'],
                assignment['xpReward'],
                AssignmentSource(
                    workshop_id=submission['workshopId'],
                    assignment_id=submission['assignmentId'],
                    submission_id=submission_id,
                ),
                now=now,
            )
        else:
            status = Rejected(reviewed_at=now, reviewed_by=actor_id, feedback=feedback)

        condition = _observed_state_condition(submission)
        items = [{
            'Update': {
                'TableName': config.SUBMISSIONS_TABLE,
                'Key': {'submissionId': submission_id},
                'UpdateExpression': 'SET #status = :status',
                'ConditionExpression': condition['ConditionExpression'],
                'ExpressionAttributeNames': condition['ExpressionAttributeNames'],
                'ExpressionAttributeValues': {
                    **condition['ExpressionAttributeValues'],
                    ':status': status.to_item(),
                },
            }
        }]
        if award is not None:
            items.extend(award.items)
        dynamo.transact_write(items)
        return {**submission, 'status': status.to_item()}, award

    reviewed, award = dynamo.run_transaction(attempt, f"review({submission_id})")
    logger.info(f"Organizer {actor_id} {decision} submission {submission_id}")
    events.publish_event(events.SUBMISSION_REVIEWED, {
        'submissionId': submission_id,
        'assignmentId': reviewed['assignmentId'],
        'workshopId': reviewed['workshopId'],
        'userId': reviewed['userId'],
        'decision': decision,
        'xpAwarded': reviewed['status'].get('xpAwarded', 0),
    })
    xp_ledger.announce_level_up(award)
    return reviewed


# =============================================================================
# Queries
# =============================================================================

def get_my_submission(assignment_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return get_submission(submission_id_for(assignment_id, user_id))


def list_for_assignment(assignment_id: str, actor_id: str, limit: int = None, cursor: str = None) -> Dict[str, Any]:
    """Organizer view of an assignment's submissions, paginated."""
    assignment = get_assignment(assignment_id)
    assert_workshop_organizer(assignment['workshopId'], actor_id)
    items, next_cursor = dynamo.query_page(
        config.SUBMISSIONS_TABLE,
        Key('assignmentId').eq(assignment_id),
        index_name=SUBMISSIONS_ASSIGNMENT_INDEX,
        limit=limit,
        cursor=cursor,
    )
    return {'items': items, 'nextCursor': next_cursor}


def list_my_workshop_submissions(workshop_id: str, user_id: str) -> List[Dict[str, Any]]:
    return dynamo.query_all(
        config.SUBMISSIONS_TABLE,
        Key('workshopId').eq(workshop_id) & Key('userId').eq(user_id),
        index_name=SUBMISSIONS_WORKSHOP_USER_INDEX,
    )


def generate_submission_upload_url(assignment_id: str, user_id: str) -> Dict[str, str]:
    """Presigned upload URL for a file_upload assignment."""
    assignment = get_assignment(assignment_id)
    if not isinstance(parse_assignment_type(assignment['assignmentType']), FileUploadAssignment):
        raise ValidationError('Assignment does not accept file uploads')
    _assert_registered_and_attended(assignment['workshopId'], user_id)
    return blob_store.generate_upload_url()
