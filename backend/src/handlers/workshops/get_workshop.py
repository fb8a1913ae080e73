"""
Get Workshop Handler.
GET /workshops/{workshopId}
"""
from workshop_engine import catalog
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    resolve_current_user(event)
    return 200, catalog.get_workshop_detail(require_path_param(event, 'workshopId'))
