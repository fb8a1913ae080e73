"""
Review Registration Handler.
POST /workshops/{workshopId}/registrations/{userId}/review
Body: {"decision": "approve" | "reject"}
"""
from workshop_engine import registration
from workshop_engine.auth import resolve_current_user
from workshop_engine.errors import ValidationError
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    """Organizer approves or rejects a pending registration."""
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    target_user_id = require_path_param(event, 'userId')
    decision = parse_body(event).get('decision')

    if decision == 'approve':
        result = registration.approve_registration(workshop_id, target_user_id, user.user_id)
    elif decision == 'reject':
        result = registration.reject_registration(workshop_id, target_user_id, user.user_id)
    else:
        raise ValidationError("decision must be 'approve' or 'reject'")
    return 200, result
