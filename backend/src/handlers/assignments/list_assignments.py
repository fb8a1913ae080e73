"""
List Assignments Handler.
GET /workshops/{workshopId}/assignments
"""
from workshop_engine import assignments
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param
from workshop_engine.workshop_auth import get_workshop


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    get_workshop(workshop_id)
    items = assignments.list_assignments(workshop_id, user.user_id)
    return 200, {'items': items, 'count': len(items)}
