"""
Create Assignment Handler.
POST /workshops/{workshopId}/assignments
"""
from workshop_engine import assignments
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    result = assignments.create_assignment(require_path_param(event, 'workshopId'), user.user_id, parse_body(event))
    return 201, result
