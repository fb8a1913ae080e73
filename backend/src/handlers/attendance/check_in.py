"""
Check In Handler.
POST /workshops/{workshopId}/check-in
Body: {"code": "ABC123"}
"""
from workshop_engine import attendance
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    """
    Attendee checks in with the code shown at the workshop.

    The first check-in records attendance and awards attendance XP; repeating
    it returns the existing record.
    """
    user = resolve_current_user(event)
    body = parse_body(event)
    result = attendance.check_in(require_path_param(event, 'workshopId'), user.user_id, body.get('code'))
    return 200, result
