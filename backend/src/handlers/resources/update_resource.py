"""
Update Resource Handler.
PATCH /resources/{resourceId}
"""
from workshop_engine import resources
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, parse_body, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    return 200, resources.update_resource(require_path_param(event, 'resourceId'), user.user_id, parse_body(event))
