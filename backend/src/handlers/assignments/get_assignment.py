"""
Get Assignment Handler.
GET /assignments/{assignmentId}
"""
from workshop_engine import assignments, submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """Assignment plus the caller's own submission, if any."""
    user = resolve_current_user(event)
    assignment_id = require_path_param(event, 'assignmentId')
    return 200, {
        'assignment': assignments.get_assignment(assignment_id),
        'mySubmission': submissions.get_my_submission(assignment_id, user.user_id),
    }
