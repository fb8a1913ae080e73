"""
Update Workshop Handler.
PATCH /workshops/{workshopId}
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    workshop = catalog.update_workshop(workshop_id, user.user_id, parse_body(event))
    return 200, catalog.to_detail(workshop)
