"""
Delete Workshop Handler.
DELETE /workshops/{workshopId}
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """Delete a draft workshop with its registrations, attendance, assignments and resources."""
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    catalog.delete_workshop(workshop_id, user.user_id)
    return 200, {'message': 'Workshop deleted', 'workshopId': workshop_id}
