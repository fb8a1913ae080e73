"""
Get My Submission Handler.
GET /assignments/{assignmentId}/submissions/me
"""
from workshop_engine import submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    assignment_id = require_path_param(event, 'assignmentId')
    return 200, {
        'assignmentId': assignment_id,
        'submission': submissions.get_my_submission(assignment_id, user.user_id),
    }
