"""
List Submissions Handler.
GET /assignments/{assignmentId}/submissions?limit=...&cursor=...
"""
from workshop_engine import submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, get_limit_param, get_query_param, require_path_param


@api_handler
def handler(event, context):
    """Organizer view of every submission to an assignment."""
    user = resolve_current_user(event)
    result = submissions.list_for_assignment(
        require_path_param(event, 'assignmentId'),
        user.user_id,
        limit=get_limit_param(event),
        cursor=get_query_param(event, 'cursor'),
    )
    return 200, result
