"""
Remove Attendance Handler.
DELETE /workshops/{workshopId}/attendance/{userId}
"""
from workshop_engine import attendance
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    target_user_id = require_path_param(event, 'userId')
    attendance.remove_attendance(workshop_id, target_user_id, user.user_id)
    return 200, {'message': 'Attendance removed', 'workshopId': workshop_id, 'userId': target_user_id}
