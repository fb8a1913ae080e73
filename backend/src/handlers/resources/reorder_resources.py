"""
Reorder Resources Handler.
PUT /workshops/{workshopId}/resources/order
Body: {"items": [{"resourceId": "...", "position": 0}, ...]}
"""
from workshop_engine import resources
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    resources.reorder_resources(workshop_id, user.user_id, parse_body(event).get('items'))
    return 200, {'message': 'Resources reordered', 'workshopId': workshop_id}
