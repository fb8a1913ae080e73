"""
Register for Workshop Handler.
POST /workshops/{workshopId}/registrations
"""
from workshop_engine import registration
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """
    Register the caller. The resulting status depends on the workshop's
    registration mode: registered, waitlisted or pending approval.
    """
    user = resolve_current_user(event)
    result = registration.register(require_path_param(event, 'workshopId'), user.user_id)
    return 201, result
