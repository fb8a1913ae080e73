"""
Check-in Code Handler.
POST /workshops/{workshopId}/check-in-code  - generate
PUT  /workshops/{workshopId}/check-in-code  - refresh (the old code stops working)
"""
from workshop_engine import attendance
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')

    if event.get('httpMethod') == 'PUT':
        code = attendance.refresh_check_in_code(workshop_id, user.user_id)
    else:
        code = attendance.generate_check_in_code(workshop_id, user.user_id)
    return 200, {'workshopId': workshop_id, 'checkInCode': code}
