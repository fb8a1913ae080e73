"""
Submit Work Handler.
POST /assignments/{assignmentId}/submissions
Body: {"content": {"type": "link_submission", "url": "..."}}
"""
from workshop_engine import submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    """
    Submit or resubmit work for an assignment.

    The caller must be registered for and checked in to the workshop, and the
    deadline must not have passed.
    """
    user = resolve_current_user(event)
    body = parse_body(event)
    result = submissions.submit(require_path_param(event, 'assignmentId'), user.user_id, body.get('content'))
    return 201, result
