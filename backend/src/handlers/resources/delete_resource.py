"""
Delete Resource Handler.
DELETE /resources/{resourceId}
"""
from workshop_engine import resources
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    resource_id = require_path_param(event, 'resourceId')
    resources.delete_resource(resource_id, user.user_id)
    return 200, {'message': 'Resource deleted', 'resourceId': resource_id}
