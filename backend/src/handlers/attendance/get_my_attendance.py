"""
Get My Attendance Handler.
GET /workshops/{workshopId}/attendance/me
"""
from workshop_engine import attendance
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    return 200, attendance.get_my_attendance(require_path_param(event, 'workshopId'), user.user_id)
