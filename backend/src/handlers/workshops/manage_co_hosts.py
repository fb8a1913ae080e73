"""
Co-host Management Handler.
POST   /workshops/{workshopId}/co-hosts/{userId}
DELETE /workshops/{workshopId}/co-hosts/{userId}
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    user = resolve_current_user(event)
    workshop_id = require_path_param(event, 'workshopId')
    co_host_id = require_path_param(event, 'userId')

    if event.get('httpMethod') == 'DELETE':
        workshop = catalog.remove_co_host(workshop_id, user.user_id, co_host_id)
    else:
        workshop = catalog.add_co_host(workshop_id, user.user_id, co_host_id)
    return 200, {'workshopId': workshop_id, 'coHosts': workshop.get('coHosts', [])}
