"""
Get My Registration Handler.
GET /workshops/{workshopId}/registrations/me
"""
from workshop_engine import registration
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    return 200, {
        'workshopId': workshop_id,
        'registration': registration.get_my_registration(workshop_id, user.user_id),
    }
