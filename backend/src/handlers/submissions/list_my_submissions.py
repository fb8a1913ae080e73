"""
List My Submissions Handler.
GET /workshops/{workshopId}/submissions/me
"""
from workshop_engine import submissions
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    items = submissions.list_my_workshop_submissions(require_path_param(event, 'workshopId'), user.user_id)
    return 200, {'items': items, 'count': len(items)}
