"""
List Attendees Handler.
GET /workshops/{workshopId}/attendance
"""
from workshop_engine import attendance
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    attendees = attendance.list_attendees(require_path_param(event, 'workshopId'), user.user_id)
    return 200, {'attendees': attendees, 'count': len(attendees)}
