"""
List Registrations Handler.
GET /workshops/{workshopId}/registrations?status=...&limit=...&cursor=...
"""
from workshop_engine import registration
from workshop_engine.auth import resolve_current_user
from workshop_engine.utils import api_handler, get_limit_param, get_query_param, require_path_param


@api_handler
def handler(event, context):
    """Organizer view; status defaults to every status."""
    user = resolve_current_user(event)
    result = registration.list_registrations(
        require_path_param(event, 'workshopId'),
        user.user_id,
        status=get_query_param(event, 'status'),
        limit=get_limit_param(event),
        cursor=get_query_param(event, 'cursor'),
    )
    return 200, result
