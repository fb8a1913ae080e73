"""
Verify Registration Count Handler.
GET /workshops/{workshopId}/registrations/count-check

Compares the workshop's stored registrationCount with the number of
registered rows. A mismatch means a bug and is logged by the engine.
"""
from workshop_engine import registration
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param
from workshop_engine.workshop_auth import assert_workshop_organizer


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    if user.role != 'admin':
        assert_workshop_organizer(workshop_id, user.user_id)
    return 200, registration.verify_registration_count(workshop_id)
