"""
Cancel Registration Handler.
DELETE /workshops/{workshopId}/registrations/me
"""
from workshop_engine import registration
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    result = registration.cancel_registration(require_path_param(event, 'workshopId'), user.user_id)
    return 200, result
