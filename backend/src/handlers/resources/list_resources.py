"""
List Resources Handler.
GET /workshops/{workshopId}/resources
"""
from workshop_engine import resources
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, require_path_param


@api_handler
def handler(event, context):
    """Organizers and registered attendees only; file resources include a download URL."""
    user = resolve_current_user(event)
    items = resources.list_resources(require_path_param(event, 'workshopId'), user.user_id)
    return 200, {'items': items, 'count': len(items)}
