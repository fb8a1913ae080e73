"""
Schedule Workshop Handler.
POST /workshops/{workshopId}/schedule
Body: {"scheduledAt": <epoch ms>}
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    body = parse_body(event)
    workshop = catalog.schedule_workshop(
        require_path_param(event, 'workshopId'), user.user_id, body.get('scheduledAt')
    )
    return 200, catalog.to_detail(workshop)
