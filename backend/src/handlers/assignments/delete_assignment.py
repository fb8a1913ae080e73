"""
Delete Assignment Handler.
DELETE /assignments/{assignmentId}
"""
from workshop_engine import assignments
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """Deleting an assignment also deletes its submissions."""
    user = resolve_current_user(event)
    assignment_id = require_path_param(event, 'assignmentId')
    assignments.delete_assignment(assignment_id, user.user_id)
    return 200, {'message': 'Assignment deleted', 'assignmentId': assignment_id}
