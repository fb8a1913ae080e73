"""
Manual Check In Handler.
POST /workshops/{workshopId}/attendance/{userId}
"""
from workshop_engine import attendance
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    result = attendance.manual_check_in(
        require_path_param(event, 'workshopId'),
        require_path_param(event, 'userId'),
        user.user_id,
    )
    return 200, result
